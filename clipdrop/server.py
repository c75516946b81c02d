import os

import uvicorn

from clipdrop.core.config import settings
from clipdrop.core.logging import log


def run():
    """Serve the extraction API on $PORT (default 3000)."""
    log.info("Server is running on port %s", settings.PORT)
    uvicorn.run("clipdrop.main:app", host="0.0.0.0", port=settings.PORT)


def run_placeholder():
    port = int(os.environ.get("PORT", settings.PLACEHOLDER_PORT))
    log.info("Server is running on port %s", port)
    uvicorn.run("clipdrop.placeholder:app", host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
