import asyncio
import os
import resource
import sys
import time
from datetime import datetime, timezone
from typing import Optional

from clipdrop.core.logging import log


class ProcessMonitor:
    """Process-wide observability: uptime/memory/CPU snapshots, a periodic
    metrics log line and last-resort logging of uncaught errors.

    Created once at startup and handed to request handlers through
    ``app.state`` instead of living as module globals.
    """

    def __init__(self, interval: int = 60):
        self.interval = interval
        self.started_at = time.monotonic()
        self._task: Optional[asyncio.Task] = None
        self._prev_excepthook = None

    def uptime(self) -> float:
        return round(time.monotonic() - self.started_at, 3)

    def snapshot(self) -> dict:
        usage = resource.getrusage(resource.RUSAGE_SELF)
        # ru_maxrss is bytes on macOS, kilobytes elsewhere
        max_rss = usage.ru_maxrss if sys.platform == "darwin" else usage.ru_maxrss * 1024
        return {
            "status": "ok",
            "uptime": self.uptime(),
            "memory": {"rss": self._current_rss(), "maxRss": max_rss},
            "cpu": {"user": round(usage.ru_utime, 3), "system": round(usage.ru_stime, 3)},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def _current_rss(self) -> Optional[int]:
        try:
            with open("/proc/self/statm") as f:
                pages = int(f.read().split()[1])
            return pages * os.sysconf("SC_PAGE_SIZE")
        except (OSError, ValueError, IndexError):
            return None

    def log_metrics(self):
        snap = self.snapshot()
        log.info(
            "Metrics uptime=%.0fs rss=%s maxRss=%s cpu_user=%.2fs cpu_system=%.2fs",
            snap["uptime"], snap["memory"]["rss"], snap["memory"]["maxRss"],
            snap["cpu"]["user"], snap["cpu"]["system"],
        )

    async def _metrics_loop(self):
        while True:
            await asyncio.sleep(self.interval)
            self.log_metrics()

    def _log_uncaught(self, exc_type, exc, tb):
        log.critical("Uncaught exception: %s", exc, exc_info=(exc_type, exc, tb))

    def _log_loop_error(self, loop, context):
        exc = context.get("exception")
        log.error("Unhandled async error: %s", context.get("message"), exc_info=exc)

    def start(self):
        """Install the error hooks and start the metrics loop on the running loop."""
        self._prev_excepthook = sys.excepthook
        sys.excepthook = self._log_uncaught

        loop = asyncio.get_running_loop()
        loop.set_exception_handler(self._log_loop_error)

        if self.interval > 0:
            self._task = loop.create_task(self._metrics_loop())
        log.info("Monitor started (metrics every %ss)", self.interval)

    async def stop(self):
        if self._prev_excepthook is not None:
            sys.excepthook = self._prev_excepthook
            self._prev_excepthook = None

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
