from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from incident_coordinator.config import EscalationConfig
from incident_coordinator.core.incident_repository import IncidentStore
from incident_coordinator.core.incident_service import IncidentService
from incident_coordinator.models.incidents import IncidentState, utc_now

log = logging.getLogger(__name__)


@dataclass
class TickSummary:
    """Outcome of one escalation sweep."""

    eligible: int = 0
    escalated: int = 0
    unchanged: int = 0
    failed: int = 0


class EscalationScheduler:
    """Periodically escalates incidents nobody has acknowledged.

    One long-lived asyncio task runs a sweep every ``config.tick_seconds``.
    Each sweep asks the store for REPORTED, unacknowledged incidents older
    than ``config.threshold_seconds`` and escalates every one of them as its
    own unit of work. A failure on one incident is logged and skipped; the
    incident stays eligible and is picked up again by the next sweep.
    """

    def __init__(
        self,
        store: IncidentStore,
        service: IncidentService,
        config: EscalationConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._service = service
        self._config = config
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self.last_tick: Optional[datetime] = None
        self.last_summary: Optional[TickSummary] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, now: Optional[datetime] = None) -> TickSummary:
        """Run a single sweep.

        1. cutoff = now - threshold
        2. find REPORTED incidents with no acknowledgement reported before cutoff
        3. escalate then persist each one independently
        """
        now = now or self._clock()
        cutoff = now - timedelta(seconds=self._config.threshold_seconds)
        summary = TickSummary()

        incidents = self._store.find_eligible_for_escalation(
            IncidentState.REPORTED, cutoff
        )
        summary.eligible = len(incidents)

        for incident in incidents:
            try:
                result = await self._service.escalate(
                    incident.id, now=now, reported_before=cutoff
                )
            except Exception:
                log.exception("Escalation of incident %s failed", incident.id)
                summary.failed += 1
                continue

            if not result.ok:
                log.warning(
                    "Escalation of incident %s skipped: %s",
                    incident.id,
                    result.failure.message,
                )
                summary.failed += 1
            elif result.changed:
                log.info(
                    "Escalated incident %s from %s to %s",
                    incident.id,
                    incident.priority.value,
                    result.incident.priority.value,
                )
                summary.escalated += 1
            else:
                summary.unchanged += 1

        if summary.eligible:
            log.info(
                "Escalation sweep: %d eligible, %d escalated, %d unchanged, %d failed",
                summary.eligible,
                summary.escalated,
                summary.unchanged,
                summary.failed,
            )

        self.last_tick = now
        self.last_summary = summary
        return summary

    async def _worker(self) -> None:
        log.info(
            "Escalation scheduler started (interval=%ss, threshold=%ss)",
            self._config.tick_seconds,
            self._config.threshold_seconds,
        )

        while True:
            try:
                await self.run_once()
            except Exception:
                log.exception("Escalation sweep failed")

            await asyncio.sleep(self._config.tick_seconds)

    def start(self) -> None:
        """Spawn the sweep task on the running event loop.

        Does nothing if the scheduler is disabled or already running.
        """
        if not self._config.enabled:
            log.warning("Escalation scheduler disabled by configuration")
            return
        if self.is_running:
            return

        self._task = asyncio.create_task(self._worker(), name="escalation-scheduler")

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
            log.info("Escalation scheduler stopped")
