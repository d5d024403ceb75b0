"""
Healthchecks for the mapper's queue dependencies.

Three probes are shared by two endpoints:
- ``health()`` runs every check concurrently and reports each outcome
- ``gtg()`` runs the connectivity checks concurrently and fails as soon as
  one of them fails, cancelling the ones still running
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Protocol

from utils.config import settings
from utils.schemas import CheckResult, GTGStatus, HealthReport

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[str]]


class ReadQueue(Protocol):
    async def connectivity_check(self) -> str: ...

    async def monitor_check(self, lag_tolerance: int) -> str: ...


class WriteQueue(Protocol):
    async def connectivity_check(self) -> str: ...


@dataclass(frozen=True)
class Check:
    id: str
    name: str
    severity: int
    business_impact: str
    technical_summary: str
    probe: Probe


class HealthService:
    """Runs the queue healthchecks."""

    def __init__(
        self,
        consumer: ReadQueue,
        producer: WriteQueue,
        lag_tolerance: Optional[int] = None,
        timeout: Optional[float] = None,
        panic_guide: Optional[str] = None,
    ) -> None:
        self.consumer = consumer
        self.producer = producer
        self.lag_tolerance = settings.QUEUE_LAG_TOLERANCE if lag_tolerance is None else lag_tolerance
        self.timeout = settings.HEALTH_CHECK_TIMEOUT if timeout is None else timeout
        self.panic_guide = settings.PANIC_GUIDE_URL if panic_guide is None else panic_guide

        self.read_queue_check = Check(
            id="read-message-queue-reachable",
            name="Read Message Queue Reachable",
            severity=1,
            business_impact="Native video content can't be read from the queue. Publishing or updating videos will not be possible.",
            technical_summary="Read message queue is not reachable/healthy",
            probe=self.consumer.connectivity_check,
        )
        self.write_queue_check = Check(
            id="write-message-queue-reachable",
            name="Write Message Queue Reachable",
            severity=1,
            business_impact="Mapped videos can't be written to the queue. Clients will not see new or updated videos.",
            technical_summary="Write message queue is not reachable/healthy",
            probe=self.producer.connectivity_check,
        )
        self.lag_check = Check(
            id="read-message-queue-lagging",
            name="Read Message Queue Is Not Lagging",
            severity=3,
            business_impact="Publishing or updating videos will be delayed.",
            technical_summary="Messages awaiting handling exceed the configured lag tolerance. Check if the consumer is stuck.",
            probe=self._lag_probe,
        )
        self.checks = (self.read_queue_check, self.write_queue_check, self.lag_check)

    async def _lag_probe(self) -> str:
        return await self.consumer.monitor_check(self.lag_tolerance)

    async def _run(self, check: Check) -> str:
        try:
            return await asyncio.wait_for(check.probe(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"{check.name} check timed out after {self.timeout}s") from None

    async def _evaluate(self, check: Check) -> CheckResult:
        ok = True
        try:
            output = await self._run(check)
        except Exception as e:
            logger.warning("Healthcheck failed", extra={"check": check.id, "error": str(e)})
            ok, output = False, str(e)

        return CheckResult(
            id=check.id,
            name=check.name,
            ok=ok,
            severity=check.severity,
            businessImpact=check.business_impact,
            technicalSummary=check.technical_summary,
            panicGuide=self.panic_guide,
            checkOutput=output,
            lastUpdated=datetime.now(timezone.utc).isoformat(),
        )

    async def health(self) -> HealthReport:
        """Run every check and report each outcome."""
        results = await asyncio.gather(*(self._evaluate(check) for check in self.checks))
        return HealthReport(
            systemCode=settings.SYSTEM_CODE,
            name="Next Video Mapper",
            description="Checks if all the dependent services are reachable and healthy.",
            ok=all(result.ok for result in results),
            checks=list(results),
        )

    async def gtg(self) -> GTGStatus:
        """Good-to-go: fails with the first connectivity failure, without
        waiting for slower checks."""
        tasks = [
            asyncio.create_task(self._run(check))
            for check in (self.read_queue_check, self.write_queue_check)
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    await next_done
                except Exception as e:
                    return GTGStatus(goodToGo=False, message=str(e))
            return GTGStatus(goodToGo=True)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
