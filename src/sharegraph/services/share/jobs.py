"""
Background processing of ``createShare`` jobs.
"""

import asyncio
from typing import Optional

from ...shared import get_logger, get_metrics
from ...shared.infrastructure.queue import JobQueue
from .creation import CREATE_SHARE_JOB, PublishOrchestrator


class ShareJobWorker:
    """
    Drains the job queue and publishes each requested entity.

    A failing job is logged and dropped; the worker keeps running.
    """

    def __init__(self, queue: JobQueue, orchestrator: PublishOrchestrator, poll_timeout: float = 1.0):
        self.queue = queue
        self.orchestrator = orchestrator
        self.poll_timeout = poll_timeout
        self.logger = get_logger(__name__)
        self.processed = 0
        self.failed = 0
        self._stopping = asyncio.Event()

    async def run_once(self, timeout: Optional[float] = None) -> bool:
        """
        Process at most one job.

        Returns:
            True if a job was taken off the queue
        """
        job = await self.queue.dequeue(timeout=self.poll_timeout if timeout is None else timeout)
        if job is None:
            return False

        name, payload = job
        if name != CREATE_SHARE_JOB:
            self.logger.warning(f"Ignoring unknown job: {name}")
            return True

        try:
            result = await self.orchestrator.process_create_share_job(payload)
        except Exception as e:
            self.failed += 1
            self.logger.error(f"createShare job failed for {payload.get('req')}: {e}", exc_info=True)
            return True

        self.processed += 1
        self.logger.info(f"Processed createShare job: {result.record.share_id}")
        return True

    async def drain(self) -> int:
        """Process jobs until the queue is empty; returns the number taken."""
        taken = 0
        while await self.run_once(timeout=0):
            taken += 1
        return taken

    async def run(self) -> None:
        self.logger.info("Share job worker started")
        while not self._stopping.is_set():
            await self.run_once()
        self.logger.info(
            f"Share job worker stopped (processed={self.processed}, failed={self.failed}, "
            f"counters={get_metrics().snapshot()['counters']})"
        )

    def stop(self) -> None:
        self._stopping.set()
