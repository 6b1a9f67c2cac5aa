from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from gbp_audit.audit.orchestrator import AuditOrchestrator, STATE_FAILED, STATE_IDLE, STATE_PERSISTED
from gbp_audit.audit.store import STATUS_CONNECTED, STATUS_UNAVAILABLE, AuditStore
from gbp_audit.errors import AuditUnavailableError, SourceAccessGatedError, SourceUnavailableError
from gbp_audit.scoring.fallback import fallback_score

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

PERFORMANCE = {
    "dailyMetrics": [
        {"date": f"2026-10-{day:02d}", "views": 100, "impressions": 500, "calls": 10, "websiteClicks": 10,
         "directionRequests": 5}
        for day in range(1, 8)
    ]
}
REVIEWS = {"reviews": [{"rating": 5, "createTime": "2026-10-17T10:00:00Z", "reviewReply": {"comment": "Thanks"}}]}
PROFILE = {"title": "Acme Plumbing", "websiteUri": "https://acme.example.com"}


class FakeBackend:
    def __init__(self, performance=PERFORMANCE, reviews=REVIEWS):
        self.performance = performance
        self.reviews = reviews
        self.calls = []

    def _answer(self, value):
        if isinstance(value, Exception):
            raise value
        return value

    def fetch_performance(self, location_id, start_date, end_date):
        self.calls.append(("performance", location_id, start_date, end_date))
        return self._answer(self.performance)

    def fetch_reviews(self, location_id):
        self.calls.append(("reviews", location_id))
        return self._answer(self.reviews)


class DeferredExecutor:
    """Collects submitted work until ``drain`` runs it."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args):
        future = Future()
        self.pending.append((future, fn, args))
        return future

    def drain(self):
        while self.pending:
            future, fn, args = self.pending.pop(0)
            try:
                future.set_result(fn(*args))
            except Exception as exc:  # noqa: BLE001
                future.set_exception(exc)

    def shutdown(self, wait=True):
        self.drain()


def _orchestrator(backend=None, store=None, executor=None):
    store = store or AuditStore(locations={"loc-1": PROFILE}, user_id="user-1", user_email="a@example.com")
    store.select("loc-1")
    orchestrator = AuditOrchestrator(store, backend or FakeBackend(), now=lambda: NOW, executor=executor)
    return orchestrator, store


def test_run_audit_applies_score_and_emits_event():
    orchestrator, store = _orchestrator()
    events = []
    orchestrator.add_listener(events.append)

    score = orchestrator.run_audit("loc-1")

    assert score is store.current_score
    assert store.status == STATUS_CONNECTED
    assert store.last_updated_at == NOW
    assert len(store.metrics) == 7
    assert orchestrator.last_outcome == STATE_PERSISTED
    assert orchestrator.state == STATE_IDLE

    assert len(events) == 1
    event = events[0]
    assert event.applied is True
    assert event.location_name == "Acme Plumbing"
    assert event.date_range == {"startDate": "2026-09-18", "endDate": "2026-10-18"}
    record = event.to_record().to_payload()
    assert record["userId"] == "user-1"
    assert record["metadata"] == {"source": "audit_tool", "timestamp": NOW.isoformat()}
    assert len(record["performance"]["timeSeriesData"]) == 7
    orchestrator.shutdown()


def test_gated_performance_still_scores_with_fallbacks():
    backend = FakeBackend(performance=SourceAccessGatedError("performance", "access required", status_code=503))
    orchestrator, store = _orchestrator(backend)

    score = orchestrator.run_audit("loc-1")

    assert score.performance == fallback_score("loc-1perf", 45, 95)
    assert score.search_rank == fallback_score("loc-1rank", 1, 15)
    assert score.review_reply_score == 100
    assert store.metrics == []
    assert store.status == STATUS_CONNECTED
    orchestrator.shutdown()


def test_all_sources_unusable_clears_score_and_raises():
    failing = SourceUnavailableError("performance", "down")
    backend = FakeBackend(performance=failing, reviews=SourceUnavailableError("reviews", "down"))
    store = AuditStore(user_id="user-1")
    orchestrator, store = _orchestrator(backend, store=store)
    store.apply_success(object(), [], NOW)
    events = []
    orchestrator.add_listener(events.append)

    with pytest.raises(AuditUnavailableError):
        orchestrator.run_audit("loc-1")

    assert store.current_score is None
    assert store.status == STATUS_UNAVAILABLE
    assert store.last_updated_at == NOW
    assert orchestrator.last_outcome == STATE_FAILED
    assert events == []
    orchestrator.shutdown()


def test_reviews_only_counts_as_usable():
    backend = FakeBackend(performance={"message": "nothing"})
    orchestrator, store = _orchestrator(backend, store=AuditStore())

    score = orchestrator.run_audit("loc-1")

    assert score.review_score == 25
    assert score.profile_completion == fallback_score("loc-1profile", 65, 98)
    orchestrator.shutdown()


def test_listener_errors_are_swallowed(caplog):
    orchestrator, store = _orchestrator()
    seen = []

    def broken(event):
        raise RuntimeError("sink exploded")

    orchestrator.add_listener(broken)
    orchestrator.add_listener(seen.append)

    score = orchestrator.run_audit("loc-1")

    assert score is not None
    assert len(seen) == 1
    assert "sink exploded" in caplog.text
    orchestrator.shutdown()


def test_result_discarded_when_selection_changes():
    orchestrator, store = _orchestrator()
    events = []
    orchestrator.add_listener(events.append)
    store.select("loc-2")

    assert orchestrator.run_audit("loc-1") is None

    assert store.current_score is None
    assert store.last_updated_at is None
    assert events[0].applied is False
    orchestrator.shutdown()


def test_request_refresh_coalesces_queued_runs():
    executor = DeferredExecutor()
    backend = FakeBackend()
    orchestrator, store = _orchestrator(backend, executor=executor)

    first = orchestrator.request_refresh("loc-1")
    second = orchestrator.request_refresh("loc-1")

    assert first is second
    assert orchestrator.is_refreshing is True
    assert store.is_refreshing is True

    executor.drain()

    assert first.result() is store.current_score
    assert len([call for call in backend.calls if call[0] == "performance"]) == 1
    assert orchestrator.is_refreshing is False
    assert store.is_refreshing is False

    third = orchestrator.request_refresh("loc-1")
    assert third is not first
    executor.drain()
    assert len([call for call in backend.calls if call[0] == "performance"]) == 2
    orchestrator.shutdown()


def test_request_refresh_surfaces_failure_on_future():
    executor = DeferredExecutor()
    backend = FakeBackend(
        performance=SourceUnavailableError("performance", "down"),
        reviews=SourceUnavailableError("reviews", "down"),
    )
    orchestrator, store = _orchestrator(backend, store=AuditStore(), executor=executor)

    future = orchestrator.request_refresh("loc-1")
    executor.drain()

    with pytest.raises(AuditUnavailableError):
        future.result()
    assert orchestrator.is_refreshing is False
    orchestrator.shutdown()


def test_request_refresh_requires_location():
    orchestrator, _ = _orchestrator()
    with pytest.raises(ValueError):
        orchestrator.request_refresh("")
    orchestrator.shutdown()


def test_request_refresh_after_executor_shutdown_clears_refreshing_flag():
    executor = ThreadPoolExecutor(max_workers=1)
    executor.shutdown()
    orchestrator, store = _orchestrator(executor=executor)

    with pytest.raises(RuntimeError):
        orchestrator.request_refresh("loc-1")

    assert orchestrator.is_refreshing is False
    assert store.is_refreshing is False
    orchestrator.shutdown()


def test_store_reset_clears_session_state():
    orchestrator, store = _orchestrator()
    orchestrator.run_audit("loc-1")

    store.reset()

    assert store.current_score is None
    assert store.metrics == []
    assert store.selected_location_id is None
    assert store.user_id is None
    assert store.location_name("loc-1") is None
    assert store.status == "idle"
    orchestrator.shutdown()
