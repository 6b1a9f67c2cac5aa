"""Run audits end to end: fetch upstream data, score it, publish the result.

Runs execute one at a time on a single worker thread. A refresh requested for
a location whose run is still queued joins that run; otherwise it queues
behind the in-flight run. Inside a run the performance and reviews requests
go out concurrently and fail independently.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from gbp_audit.audit.store import AuditStore
from gbp_audit.errors import AuditUnavailableError, SourceUnavailableError
from gbp_audit.etl.transform import to_performance_metrics, to_reviews
from gbp_audit.models import AuditRunRecord, AuditScore, PerformanceMetric, Review
from gbp_audit.scoring.engine import calculate_audit_score
from gbp_audit.scoring.rank import RankLookup
from gbp_audit.vendors.gbp_backend import BackendClient

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_FETCHING = "fetching"
STATE_SCORING = "scoring"
STATE_PERSISTED = "persisted"
STATE_FAILED = "failed"

DATE_RANGE_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditCompleted:
    """Event emitted after a successful scoring pass."""

    location_id: str
    score: AuditScore
    metrics: List[PerformanceMetric]
    date_range: Dict[str, str]
    completed_at: datetime
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    location_name: Optional[str] = None
    applied: bool = True
    recommendations: Dict[str, list] = field(default_factory=lambda: {"recommendations": []})

    def to_record(self) -> AuditRunRecord:
        return AuditRunRecord(
            user_id=self.user_id,
            user_email=self.user_email,
            location_id=self.location_id,
            location_name=self.location_name,
            score=self.score,
            performance_series=list(self.metrics),
            recommendations=self.recommendations,
            date_range=dict(self.date_range),
            timestamp=self.completed_at.isoformat(),
        )


Listener = Callable[[AuditCompleted], None]


class AuditOrchestrator:
    def __init__(
        self,
        store: AuditStore,
        backend: BackendClient,
        rank_lookup: Optional[RankLookup] = None,
        now: Callable[[], datetime] = _utcnow,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.store = store
        self.backend = backend
        self.rank_lookup = rank_lookup
        self._now = now
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit-run")
        self._fetch_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="audit-fetch")
        self._lock = threading.RLock()
        self._queued: Dict[str, Future] = {}
        self._listeners: List[Listener] = []
        self._in_flight = 0
        self.state = STATE_IDLE
        self.last_outcome: Optional[str] = None

    # ---------- Presentation-facing surface ----------

    @property
    def current_score(self) -> Optional[AuditScore]:
        return self.store.current_score

    @property
    def last_updated_at(self) -> Optional[datetime]:
        return self.store.last_updated_at

    @property
    def is_refreshing(self) -> bool:
        with self._lock:
            return self._in_flight > 0

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def request_refresh(self, location_id: str) -> Future:
        """Schedule an audit for ``location_id`` without blocking the caller."""
        if not location_id:
            raise ValueError("location_id is required")
        with self._lock:
            queued = self._queued.get(location_id)
            if queued is not None and not queued.done():
                logger.debug("Coalescing refresh for %s onto queued run", location_id)
                return queued
            self._in_flight += 1
            self.store.set_refreshing(True)
            try:
                future = self._executor.submit(self._run_queued, location_id)
            except RuntimeError:
                # Executor already shut down; nothing will decrement the counter.
                self._in_flight -= 1
                if self._in_flight == 0:
                    self.store.set_refreshing(False)
                raise
            self._queued[location_id] = future
            return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self._fetch_executor.shutdown(wait=wait)

    # ---------- Run pipeline ----------

    def _run_queued(self, location_id: str) -> Optional[AuditScore]:
        with self._lock:
            self._queued.pop(location_id, None)
        try:
            return self.run_audit(location_id)
        except AuditUnavailableError as exc:
            logger.warning("Audit run failed: %s", exc)
            raise
        finally:
            with self._lock:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self.store.set_refreshing(False)

    def date_range(self) -> Dict[str, str]:
        end = self._now()
        start = end - timedelta(days=DATE_RANGE_DAYS)
        return {"startDate": start.date().isoformat(), "endDate": end.date().isoformat()}

    def _fetch_sources(
        self, location_id: str, date_range: Dict[str, str]
    ) -> Tuple[Optional[List[PerformanceMetric]], Optional[List[Review]], bool]:
        """Fetch performance and reviews concurrently; either may come back as ``None``."""
        performance_future = self._fetch_executor.submit(
            self.backend.fetch_performance, location_id, date_range["startDate"], date_range["endDate"]
        )
        reviews_future = self._fetch_executor.submit(self.backend.fetch_reviews, location_id)

        metrics: Optional[List[PerformanceMetric]] = None
        try:
            metrics = to_performance_metrics(performance_future.result())
        except SourceUnavailableError as exc:
            logger.warning("Performance data unavailable for %s: %s", location_id, exc)
        except Exception as exc:  # noqa: BLE001
            logger.error("Unexpected performance fetch error for %s: %s", location_id, exc)

        reviews: Optional[List[Review]] = None
        reviews_usable = False
        try:
            reviews = to_reviews(reviews_future.result())
            reviews_usable = True
        except SourceUnavailableError as exc:
            logger.warning("Reviews unavailable for %s: %s", location_id, exc)
        except Exception as exc:  # noqa: BLE001
            logger.error("Unexpected reviews fetch error for %s: %s", location_id, exc)

        return metrics, reviews, reviews_usable

    def _applies_to_selection(self, location_id: str) -> bool:
        selected = self.store.selected_location_id
        return selected is None or selected == location_id

    def run_audit(self, location_id: str) -> Optional[AuditScore]:
        """Run one audit synchronously.

        Returns the new score, or ``None`` when the location was deselected
        while the run was in flight. Raises :class:`AuditUnavailableError`
        when no source produced usable data.
        """
        self.state = STATE_FETCHING
        try:
            date_range = self.date_range()
            metrics, reviews, reviews_usable = self._fetch_sources(location_id, date_range)
            profile = self.store.profile_for(location_id)

            if metrics is None and profile is None and not reviews_usable:
                self.state = STATE_FAILED
                self.last_outcome = STATE_FAILED
                if self._applies_to_selection(location_id):
                    self.store.apply_failure("Unable to fetch any data from Google Business Profile")
                raise AuditUnavailableError(location_id)
            if metrics is None:
                logger.warning("Performance API not available for %s; scoring from profile and reviews", location_id)

            self.state = STATE_SCORING
            completed_at = self._now()
            score = calculate_audit_score(
                location_id,
                metrics or [],
                profile,
                reviews,
                rank_lookup=self.rank_lookup,
                now=completed_at,
            )

            applied = self._applies_to_selection(location_id)
            if applied:
                self.store.apply_success(score, metrics or [], completed_at)
            else:
                logger.info("Discarding audit result for %s; selection changed", location_id)

            self._emit(
                AuditCompleted(
                    location_id=location_id,
                    score=score,
                    metrics=metrics or [],
                    date_range=date_range,
                    completed_at=completed_at,
                    user_id=self.store.user_id,
                    user_email=self.store.user_email,
                    location_name=self.store.location_name(location_id),
                    applied=applied,
                )
            )
            self.state = STATE_PERSISTED
            self.last_outcome = STATE_PERSISTED
            return score if applied else None
        finally:
            self.state = STATE_IDLE

    def _emit(self, event: AuditCompleted) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Audit listener failed for %s: %s", event.location_id, exc)
