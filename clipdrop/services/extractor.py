import asyncio
import os
import uuid
from typing import Optional
from urllib.parse import urlparse

from clipdrop.core.config import settings
from clipdrop.core.logging import log
from clipdrop.services.downloader import DownloadTimeout, ProcessError, downloader
from clipdrop.services.jobs import job_controller


class ExtractionFailure(Exception):
    """A classified failure, ready to become an HTTP error response."""

    def __init__(self, status_code: int, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error


def is_tiktok_url(url: str) -> bool:
    return 'tiktok.com' in url


def timeout_for(is_tiktok: bool) -> int:
    """Milliseconds the client waits for a download."""
    return settings.TIKTOK_TIMEOUT_MS if is_tiktok else settings.DEFAULT_TIMEOUT_MS


def is_valid_url(url: str) -> bool:
    # Not used by /extract: the downloader decides what it can handle.
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def classify_error(exc: Exception, is_tiktok: bool) -> ExtractionFailure:
    text = str(exc)
    # Prefer the raw diagnostic output of the downloader when there is one
    output = getattr(exc, "output", "") or text
    if is_tiktok and 'timeout' in text.lower():
        return ExtractionFailure(504, 'TikTok processing timeout. Please try again.', text)
    if 'No downloadable' in output:
        return ExtractionFailure(500, 'No video found at this URL', text)
    return ExtractionFailure(500, 'Video extraction failed', text)


async def extract_video(url: Optional[str]) -> dict:
    """Downloads ``url`` and returns the artifact file name and TikTok flag.

    Raises ExtractionFailure for every error the client should see.
    """
    if not url:
        raise ExtractionFailure(400, 'URL is required')

    is_tiktok = is_tiktok_url(url)
    timeout_ms = timeout_for(is_tiktok)

    job_id = str(uuid.uuid4())
    task = asyncio.create_task(downloader.download(url, is_tiktok))
    job_controller.register_job(job_id, task)

    try:
        # wait_for cancels the task on timeout, which kills the child
        path = await asyncio.wait_for(task, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        err = DownloadTimeout(f'Processing timeout after {timeout_ms}ms')
        log.warning("[!] %s for %s", err, url)
        raise classify_error(err, is_tiktok)
    except ProcessError as e:
        log.error("[!] Extraction failed for %s (exit %s): %s", url, e.returncode, e)
        raise classify_error(e, is_tiktok)

    return {'filename': os.path.basename(path), 'is_tiktok': is_tiktok}
