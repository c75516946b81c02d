from pydantic_settings import BaseSettings
import os

class Settings(BaseSettings):
    PROJECT_NAME: str = "ClipDrop"
    CORS_ORIGINS: list[str] = ["*"]

    # Server settings
    PORT: int = 3000
    PLACEHOLDER_PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Storage settings
    DOWNLOAD_PATH: str = "downloads"

    # Extraction settings
    DOWNLOADER_BIN: str = "yt-dlp"
    TIKTOK_TIMEOUT_MS: int = 30000
    DEFAULT_TIMEOUT_MS: int = 20000
    MAX_CONCURRENT_DOWNLOADS: int = 4

    # Seconds between metrics log lines, 0 disables
    METRICS_INTERVAL: int = 60

    class Config:
        case_sensitive = True

settings = Settings()

# Ensure directories exist
os.makedirs(settings.DOWNLOAD_PATH, exist_ok=True)
