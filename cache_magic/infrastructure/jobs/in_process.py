"""
In-Process Job Transport

Runs dispatched jobs as asyncio tasks on the running event loop. Jobs are
fire-and-forget: dispatch() returns the job id immediately and failures are
logged, never raised to the dispatcher. drain() waits for outstanding jobs
(used at shutdown and in tests).

Jobs hold a live producer closure, which is why only an in-process
transport is provided.

Author: System Architect
Date: 2025-12-14
"""

import asyncio

from cache_magic.core.config.constants import Stage
from cache_magic.core.interfaces.jobs import Job
from cache_magic.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class InProcessJobTransport:
    """
    asyncio task based job transport.

    STAGE-D: Deferred refresh execution
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._completed = 0
        self._failed = 0

    def dispatch(self, job: Job) -> str:
        task = asyncio.get_running_loop().create_task(self._run(job), name=f"cache-job-{job.job_id}")
        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        log_stage(logger, Stage.DEFERRED, "Job dispatched", job_id=job.job_id, queue=job.queue)
        return job.job_id

    async def _run(self, job: Job) -> None:
        try:
            await job.run()
        except Exception as e:
            self._failed += 1
            log_stage(
                logger,
                Stage.DEFERRED,
                "Deferred job failed",
                level="error",
                job_id=job.job_id,
                queue=job.queue,
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        self._completed += 1
        log_stage(logger, Stage.DEFERRED, "Deferred job completed", level="debug", job_id=job.job_id)

    async def drain(self) -> None:
        """Wait until every dispatched job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def stats(self) -> dict[str, int]:
        return {"pending": len(self._tasks), "completed": self._completed, "failed": self._failed}
