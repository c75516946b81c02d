from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from clipdrop.api.endpoints import router as api_router
from clipdrop.core.config import settings
from clipdrop.core.logging import log
from clipdrop.core.monitor import ProcessMonitor
from clipdrop.services.jobs import job_controller


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.monitor.start()
    log.info("🟢 %s started, downloads in %s", settings.PROJECT_NAME, settings.DOWNLOAD_PATH)
    yield
    cancelled = await job_controller.cancel_all()
    if cancelled:
        log.info("Cancelled %d running downloads", cancelled)
    await app.state.monitor.stop()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
app.state.monitor = ProcessMonitor(interval=settings.METRICS_INTERVAL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        log.info("%s %s %d %dms", request.method, request.url.path, status, elapsed_ms)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


app.include_router(api_router)

# Downloaded artifacts
app.mount("/downloads", StaticFiles(directory=settings.DOWNLOAD_PATH), name="downloads")
