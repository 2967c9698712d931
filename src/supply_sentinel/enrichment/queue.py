"""Background queue that attaches root-cause narratives to CRITICAL anomalies.

Detection never waits on this queue: jobs are submitted after the scan's
transaction commits, and ``ai_root_cause`` shows up whenever a worker gets
to it. Failures are logged per job and never reach the detector.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import select

from supply_sentinel.anomaly.models import AnomalyModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrichmentJob:
    anomaly_id: str
    anomaly_type: str
    severity: str
    title: str
    description: str
    affected_resource_type: str
    affected_resource_id: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        return {
            "anomaly_type": self.anomaly_type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "affected_resource_type": self.affected_resource_type,
            "affected_resource_id": self.affected_resource_id,
            "metadata": self.metadata,
        }


class RootCauseEnricher:
    """Task + channel: ``submit`` feeds an asyncio.Queue drained by workers."""

    def __init__(self, db, client=None, timeout: float = 5.0, workers: int = 1):
        self.db = db
        self.client = client
        self.timeout = timeout
        self.worker_count = max(1, workers)
        self._queue: Optional[asyncio.Queue] = None
        self._workers: list[asyncio.Task] = []

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    def start(self) -> None:
        """Spawn worker tasks on the running event loop."""
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(), name=f"root-cause-enricher-{i}")
            for i in range(self.worker_count)
        ]

    def submit(self, job: EnrichmentJob) -> bool:
        """Queue a job without waiting. Returns False when enrichment is off."""
        if not self.enabled:
            logger.debug("Enrichment disabled, dropping job for %s", job.anomaly_id)
            return False
        if not self.running:
            self.start()
        self._queue.put_nowait(job)
        return True

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        if self.client is not None:
            await self.client.close()

    async def _worker(self) -> None:
        queue = self._queue
        while True:
            job = await queue.get()
            try:
                await self.enrich(job)
            finally:
                queue.task_done()

    async def enrich(self, job: EnrichmentJob) -> bool:
        """Generate and store the narrative for one anomaly. Never raises."""
        try:
            narrative = await asyncio.wait_for(
                self.client.generate_root_cause(job.summary()),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Root-cause generation timed out after %.1fs for anomaly %s",
                self.timeout, job.anomaly_id,
            )
            return False
        except Exception:
            logger.exception("Root-cause generation failed for anomaly %s", job.anomaly_id)
            return False

        try:
            async with self.db.get_session() as session:
                result = await session.execute(
                    select(AnomalyModel).where(AnomalyModel.id == job.anomaly_id)
                )
                anomaly = result.scalar_one_or_none()
                if anomaly is None:
                    logger.warning("Anomaly %s vanished before enrichment", job.anomaly_id)
                    return False
                anomaly.ai_root_cause = narrative
                anomaly.root_cause = narrative
        except Exception:
            logger.exception("Failed to store root cause for anomaly %s", job.anomaly_id)
            return False
        logger.info("Root cause attached to anomaly %s", job.anomaly_id)
        return True
