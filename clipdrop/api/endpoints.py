from typing import Optional
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from clipdrop.core.monitor import ProcessMonitor
from clipdrop.models.schemas import ErrorResponse, ExtractionRequest, ExtractionResult, HealthReport
from clipdrop.services.extractor import ExtractionFailure, extract_video

router = APIRouter()


def get_monitor(request: Request) -> ProcessMonitor:
    return request.app.state.monitor


@router.get("/health", response_model=HealthReport)
async def health(monitor: ProcessMonitor = Depends(get_monitor)):
    return monitor.snapshot()


@router.post(
    "/extract",
    response_model=ExtractionResult,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 504: {"model": ErrorResponse}},
)
async def extract(request: Request, body: Optional[ExtractionRequest] = None):
    try:
        result = await extract_video(body.url if body else None)
    except ExtractionFailure as e:
        payload = ErrorResponse(message=e.message, error=e.error)
        return JSONResponse(status_code=e.status_code, content=payload.model_dump(exclude_none=True))

    public_url = f"{request.url.scheme}://{request.url.netloc}/downloads/{result['filename']}"
    return ExtractionResult(success=True, url=public_url, is_tiktok=result['is_tiktok'])
