"""Best-effort delivery of audit run records to the backend."""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from gbp_audit.audit.orchestrator import AuditCompleted
from gbp_audit.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def save_failed_payload(payload: Dict[str, Any], failed_dir: str, status: Optional[int] = None,
                        text: Optional[str] = None) -> Optional[Path]:
    """Dump an undelivered payload as JSON for manual replay."""
    try:
        directory = Path(failed_dir)
        directory.mkdir(parents=True, exist_ok=True)
        fname = directory.joinpath(f"failed-{time.time_ns()}.json")
        body: Dict[str, Any] = payload if status is None else {"status": status, "text": text, "payload": payload}
        with fname.open("w", encoding="utf-8") as fh:
            json.dump(body, fh, ensure_ascii=False, indent=2)
        logger.info("Saved failed audit payload to %s", str(fname))
        return fname
    except OSError as exc:
        logger.error("Failed to save failed audit payload to disk: %s", exc)
        return None


def post_audit_result(
    payload: Dict[str, Any],
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> Optional[requests.Response]:
    """POST an audit run record to ``/api/audit-results``.

    Each record is sent once. Returns the Response on success or non-2xx, or
    None on network failure. Undelivered payloads are written to the failed
    directory for manual replay; nothing raises.
    """
    settings = settings or get_settings()
    session = session or requests.Session()
    url = f"{settings.backend_url}/api/audit-results"

    try:
        response = session.post(url, json=payload, timeout=settings.request_timeout)
    except requests.RequestException as exc:
        logger.error("Failed to save audit result for %s: %s", payload.get("locationId"), exc)
        save_failed_payload(payload, settings.failed_dir)
        return None

    if not (200 <= response.status_code < 300):
        logger.error(
            "Audit results API returned non-2xx status (%s): %s", response.status_code, response.text[:500]
        )
        save_failed_payload(payload, settings.failed_dir, status=response.status_code, text=response.text)
        return response

    logger.info("Audit result saved for %s", payload.get("locationId"))
    return response


class AuditResultWriter:
    """Orchestrator listener that ships completed runs off the scoring thread."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit-persist")

    def __call__(self, event: AuditCompleted) -> Optional[Future]:
        if not event.user_id:
            logger.warning("No current user, skipping audit save for %s", event.location_id)
            return None
        payload = event.to_record().to_payload()
        return self._executor.submit(self._write_safe, payload)

    def _write_safe(self, payload: Dict[str, Any]) -> None:
        try:
            post_audit_result(payload, settings=self.settings, session=self.session)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Audit result write failed: %s", exc)

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        self.session.close()
