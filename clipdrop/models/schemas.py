from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class ExtractionRequest(BaseModel):
    # Optional so a missing field reaches the handler and gets our 400
    url: Optional[str] = None

class ExtractionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    url: str
    is_tiktok: bool = Field(alias="isTikTok")

class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None

class MemoryUsage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rss: Optional[int] = None
    max_rss: int = Field(alias="maxRss")

class CpuUsage(BaseModel):
    user: float
    system: float

class HealthReport(BaseModel):
    status: str
    uptime: float
    memory: MemoryUsage
    cpu: CpuUsage
    timestamp: str
