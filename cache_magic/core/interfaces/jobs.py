"""
Job Transport Protocol

Deferred refresh hands a job to a transport and returns immediately. The
transport decides where and when the job runs.

Author: System Architect
Date: 2025-12-08
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Job(Protocol):
    """A unit of background work."""

    job_id: str
    queue: str

    async def run(self) -> None:
        ...


@runtime_checkable
class JobTransport(Protocol):
    """Accepts jobs for background execution."""

    def dispatch(self, job: Job) -> str:
        """
        Schedule a job without waiting for it.

        Returns:
            The job id
        """
        ...
