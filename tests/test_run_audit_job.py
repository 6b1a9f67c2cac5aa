import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from gbp_audit.errors import AuditError, AuditUnavailableError
from gbp_audit.jobs import run_audit
from gbp_audit.models import AuditScore

SCORE = AuditScore(
    overall=77, performance=80, engagement=60, search_rank=5, profile_completion=90, seo_score=100,
    review_score=50, review_reply_score=70,
)


def test_load_profile(tmp_path):
    path = tmp_path / "profile.json"
    path.write_text(json.dumps({"title": "Acme"}), encoding="utf-8")

    assert run_audit.load_profile(str(path)) == {"title": "Acme"}
    assert run_audit.load_profile(None) is None

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        run_audit.load_profile(str(path))


def test_run_audit_job_requires_location():
    with pytest.raises(ValueError):
        run_audit.run_audit_job(MagicMock(), "  ")


def test_run_audit_job_selects_and_runs():
    orchestrator = MagicMock()
    orchestrator.run_audit.return_value = SCORE

    assert run_audit.run_audit_job(orchestrator, "loc-1") is SCORE

    orchestrator.store.select.assert_called_once_with("loc-1")
    orchestrator.run_audit.assert_called_once_with("loc-1")


def test_build_orchestrator_wires_rank_lookup_and_writer(monkeypatch):
    monkeypatch.setenv("BACKEND_URL", "http://backend.test")

    local = run_audit.build_orchestrator(
        location_id="loc-1",
        profile={"title": "Acme"},
        access_token="tok",
        user_id="user-1",
        user_email=None,
        persist=True,
        local_rank=True,
    )
    remote = run_audit.build_orchestrator(
        location_id="loc-1",
        profile=None,
        access_token=None,
        user_id=None,
        user_email=None,
        persist=False,
        local_rank=False,
    )

    assert local.rank_lookup is run_audit.rank_tracker.find_rank
    assert local.store.location_name("loc-1") == "Acme"
    assert local.backend.base_url == "http://backend.test"
    assert len(local._listeners) == 1
    assert remote.rank_lookup == remote.backend.get_rank
    assert remote._listeners == []
    local.shutdown()
    remote.shutdown()


def test_main_prints_score(monkeypatch, capsys):
    orchestrator = MagicMock()
    monkeypatch.setattr(sys, "argv", ["run_audit", "--location-id", "loc-1", "--no-persist"])

    with patch.object(run_audit, "build_orchestrator", return_value=orchestrator) as build, \
            patch.object(run_audit, "run_audit_job", return_value=SCORE):
        run_audit.main()

    assert build.call_args.kwargs["persist"] is False
    assert json.loads(capsys.readouterr().out)["overall"] == 77
    orchestrator.shutdown.assert_called_once()


def test_main_exits_when_audit_unavailable(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["run_audit", "--location-id", "loc-1"])

    with patch.object(run_audit, "build_orchestrator", return_value=MagicMock()), \
            patch.object(run_audit, "run_audit_job", side_effect=AuditUnavailableError("loc-1")):
        with pytest.raises(SystemExit) as excinfo:
            run_audit.main()

    assert excinfo.value.code == 1


def test_main_prints_insights_when_requested(monkeypatch, capsys):
    orchestrator = MagicMock()
    orchestrator.store.location_name.return_value = "Acme"
    orchestrator.store.metrics = ["day-1"]
    monkeypatch.setattr(sys, "argv", ["run_audit", "--location-id", "loc-1", "--no-persist", "--insights"])

    with patch.object(run_audit, "build_orchestrator", return_value=orchestrator), \
            patch.object(run_audit, "run_audit_job", return_value=SCORE), \
            patch.object(run_audit, "generate_insights", return_value="PERFORMANCE SUMMARY\nSteady growth.") as gen:
        run_audit.main()

    gen.assert_called_once_with(orchestrator.backend.generate_text, "Acme", SCORE, ["day-1"])
    assert "PERFORMANCE SUMMARY\nSteady growth." in capsys.readouterr().out


def test_request_insights_logs_and_returns_none_without_metrics(caplog):
    orchestrator = MagicMock()
    orchestrator.store.metrics = []

    assert run_audit.request_insights(orchestrator, "loc-1", SCORE) is None

    orchestrator.backend.generate_text.assert_not_called()
    assert "Insights unavailable for loc-1" in caplog.text


def test_request_insights_handles_backend_failure(caplog):
    orchestrator = MagicMock()
    orchestrator.store.metrics = ["day-1"]
    orchestrator.backend.generate_text.side_effect = AuditError("insights request failed: quota")

    with patch.object(run_audit, "generate_insights", side_effect=lambda generate, *args: generate("prompt")):
        assert run_audit.request_insights(orchestrator, "loc-1", SCORE) is None

    assert "quota" in caplog.text
