"""Replay audit result payloads that could not be delivered."""

import json
import logging
import os
import time

import requests

from gbp_audit.core.config import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    settings = get_settings()
    folder = settings.failed_dir
    url = f"{settings.backend_url}/api/audit-results"

    if not os.path.isdir(folder):
        logger.info("No failed folder: %s", folder)
        raise SystemExit(0)

    for fname in sorted(os.listdir(folder)):
        path = os.path.join(folder, fname)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
            # Non-2xx dumps wrap the original payload.
            if "payload" in payload and "status" in payload:
                payload = payload["payload"]
            r = requests.post(url, json=payload, timeout=settings.request_timeout)
            r.raise_for_status()
            logger.info("Replayed %s => %s", fname, r.status_code)
            os.remove(path)
        except (OSError, ValueError, requests.RequestException) as e:
            logger.warning("Failed to replay %s: %s", fname, e)
            time.sleep(1)


if __name__ == "__main__":
    main()
