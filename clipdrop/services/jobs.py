import asyncio
from typing import Dict

class JobController:
    """Tracks in-flight download tasks so shutdown can cancel them."""

    def __init__(self):
        self.jobs: Dict[str, asyncio.Task] = {}

    def register_job(self, job_id: str, task: asyncio.Task):
        self.jobs[job_id] = task
        task.add_done_callback(lambda t: self.jobs.pop(job_id, None))

    async def cancel_all(self) -> int:
        pending = [t for t in self.jobs.values() if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)

job_controller = JobController()
