"""CLI job to audit one Business Profile location."""

import argparse
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from gbp_audit.audit.orchestrator import AuditOrchestrator
from gbp_audit.audit.persistence import AuditResultWriter
from gbp_audit.audit.scheduler import RefreshScheduler
from gbp_audit.audit.store import AuditStore
from gbp_audit.core import rank_tracker
from gbp_audit.core.config import get_settings
from gbp_audit.errors import AuditError, AuditUnavailableError
from gbp_audit.insights import generate_insights
from gbp_audit.models import AuditScore
from gbp_audit.vendors.gbp_backend import BackendClient

logger = logging.getLogger(__name__)


def load_profile(path: Optional[str]) -> Optional[Dict[str, Any]]:
    if not path:
        return None
    with Path(path).open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"Profile file {path} must contain a JSON object")
    return data


def build_orchestrator(
    *,
    location_id: str,
    profile: Optional[Dict[str, Any]],
    access_token: Optional[str],
    user_id: Optional[str],
    user_email: Optional[str],
    persist: bool,
    local_rank: bool,
) -> AuditOrchestrator:
    settings = get_settings()
    store = AuditStore(
        locations={location_id: profile} if profile else None,
        user_id=user_id,
        user_email=user_email,
    )
    backend = BackendClient(settings.backend_url, access_token=access_token, timeout=settings.request_timeout)
    rank_lookup = rank_tracker.find_rank if local_rank else backend.get_rank
    orchestrator = AuditOrchestrator(store, backend, rank_lookup=rank_lookup)
    if persist:
        orchestrator.add_listener(AuditResultWriter(settings))
    return orchestrator


def run_audit_job(orchestrator: AuditOrchestrator, location_id: str) -> AuditScore:
    if not location_id or not location_id.strip():
        raise ValueError("location_id is required")
    logger.info("Running audit for location=%s", location_id)
    orchestrator.store.select(location_id)
    score = orchestrator.run_audit(location_id)
    logger.info("Completed audit for %s: overall=%d", location_id, score.overall)
    return score


def request_insights(orchestrator: AuditOrchestrator, location_id: str, score: AuditScore) -> Optional[str]:
    """Ask the backend for written insights on a finished audit; None when they cannot be produced."""
    try:
        return generate_insights(
            orchestrator.backend.generate_text,
            orchestrator.store.location_name(location_id),
            score,
            orchestrator.store.metrics,
        )
    except (AuditError, ValueError) as exc:
        logger.warning("Insights unavailable for %s: %s", location_id, exc)
        return None


def watch(orchestrator: AuditOrchestrator, location_id: str) -> None:
    settings = get_settings()
    scheduler = RefreshScheduler(
        orchestrator,
        interval_seconds=settings.refresh_interval_seconds,
        staleness_seconds=settings.staleness_seconds,
        auto_refresh=settings.auto_refresh,
    )
    scheduler.start()
    scheduler.select_location(location_id)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping audit watch for %s", location_id)
    finally:
        scheduler.shutdown()
        orchestrator.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a Business Profile audit")
    parser.add_argument("--location-id", dest="location_id", required=True, help="Location to audit")
    parser.add_argument("--profile", dest="profile_path", help="Path to the location's profile JSON")
    parser.add_argument("--user-id", dest="user_id", help="Owner of the audit record")
    parser.add_argument("--user-email", dest="user_email", help="Owner email for the audit record")
    parser.add_argument(
        "--access-token",
        dest="access_token",
        default=os.getenv("GBP_ACCESS_TOKEN"),
        help="Google OAuth access token forwarded to the backend",
    )
    parser.add_argument("--no-persist", dest="persist", action="store_false", help="Skip saving the audit result")
    parser.add_argument("--local-rank", dest="local_rank", action="store_true",
                        help="Track rank with the local provider instead of the backend endpoint")
    parser.add_argument("--watch", dest="watch", action="store_true", help="Keep refreshing until interrupted")
    parser.add_argument("--insights", dest="insights", action="store_true",
                        help="Print AI-written insights after the audit")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    orchestrator = build_orchestrator(
        location_id=args.location_id,
        profile=load_profile(args.profile_path),
        access_token=args.access_token,
        user_id=args.user_id,
        user_email=args.user_email,
        persist=args.persist,
        local_rank=args.local_rank,
    )

    if args.watch:
        watch(orchestrator, args.location_id)
        return

    try:
        score = run_audit_job(orchestrator, args.location_id)
    except AuditUnavailableError as exc:
        logger.error("Performance data unavailable: %s", exc)
        raise SystemExit(1) from exc
    finally:
        orchestrator.shutdown()

    print(json.dumps(score.to_dict(), indent=2))
    if args.insights:
        insights = request_insights(orchestrator, args.location_id, score)
        if insights:
            print(insights)


if __name__ == "__main__":
    main()
