"""
Refresh policy for the audit dashboard.

Triggers
--------
  location change     immediate refresh of the newly selected location
  interval            every ``interval_seconds`` while auto-refresh is on,
                      skipped while a run is in flight
  visibility          hidden to visible, only when the last successful run is
                      older than ``staleness_seconds`` (or there is none)

The interval timer is an APScheduler ``BackgroundScheduler`` job; both the
scheduler and the clock are injectable so the policy can be driven from tests.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from gbp_audit.audit.orchestrator import AuditOrchestrator

logger = logging.getLogger(__name__)

JOB_ID = "audit_auto_refresh"
DEFAULT_INTERVAL_SECONDS = 5 * 60
DEFAULT_STALENESS_SECONDS = 2 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshScheduler:
    def __init__(
        self,
        orchestrator: AuditOrchestrator,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        staleness_seconds: int = DEFAULT_STALENESS_SECONDS,
        auto_refresh: bool = True,
        scheduler: Optional[Any] = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.orchestrator = orchestrator
        self.store = orchestrator.store
        self.interval_seconds = interval_seconds
        self.staleness = timedelta(seconds=staleness_seconds)
        self.auto_refresh = auto_refresh
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._now = now
        self._visible = True
        self._started = False

    # ---------- Lifecycle ----------

    def start(self) -> None:
        """Register the interval job and start the underlying scheduler."""
        if self._started:
            return
        self._scheduler.add_job(
            self.tick,
            trigger="interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            name="Audit auto-refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.auto_refresh:
            self._scheduler.pause_job(JOB_ID)
        self._scheduler.start()
        self._started = True
        logger.info("Audit refresh scheduler started: interval=%ss", self.interval_seconds)

    def shutdown(self, wait: bool = True) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=wait)
        self._started = False
        logger.info("Audit refresh scheduler stopped")

    def _restart_interval(self) -> None:
        if self._started:
            self._scheduler.reschedule_job(JOB_ID, trigger="interval", seconds=self.interval_seconds)
            # Rescheduling resumes a paused job.
            if not self.auto_refresh:
                self._scheduler.pause_job(JOB_ID)

    # ---------- Triggers ----------

    def select_location(self, location_id: Optional[str]) -> Optional[Future]:
        """Change the selected location and refresh it immediately."""
        if not self.store.select(location_id):
            return None
        if not location_id:
            return None
        logger.info("Location changed to %s", location_id)
        self._restart_interval()
        return self.orchestrator.request_refresh(location_id)

    def tick(self) -> Optional[Future]:
        """Interval callback."""
        location_id = self.store.selected_location_id
        if not location_id or not self.auto_refresh:
            return None
        if self.orchestrator.is_refreshing:
            logger.debug("Skipping auto-refresh for %s; run already in flight", location_id)
            return None
        logger.info("Auto-refreshing audit data for %s", location_id)
        return self.orchestrator.request_refresh(location_id)

    def is_stale(self) -> bool:
        last = self.store.last_updated_at
        return last is None or (self._now() - last) > self.staleness

    def on_visibility_change(self, visible: bool) -> Optional[Future]:
        """Record a visibility transition; refresh on hidden to visible when stale."""
        became_visible = visible and not self._visible
        self._visible = visible
        if not became_visible:
            return None
        location_id = self.store.selected_location_id
        if not location_id or not self.auto_refresh:
            return None
        if not self.is_stale():
            logger.debug("Visible again but audit for %s is fresh; skipping", location_id)
            return None
        logger.info("Page became visible - refreshing audit data for %s", location_id)
        return self.orchestrator.request_refresh(location_id)

    # ---------- Settings ----------

    def set_auto_refresh(self, enabled: bool) -> None:
        self.auto_refresh = enabled
        if self._started:
            if enabled:
                self._scheduler.resume_job(JOB_ID)
            else:
                self._scheduler.pause_job(JOB_ID)

    def set_interval(self, seconds: int) -> None:
        if seconds <= 0:
            raise ValueError("interval must be positive")
        self.interval_seconds = seconds
        self._restart_interval()
