"""HTTP entrypoint for rank tracking and stored audit results."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict

from flask import Flask, jsonify, request

from gbp_audit.core import rank_tracker
from gbp_audit.core.config import ConfigError, get_settings
from gbp_audit.core.db import fetch_audit_results, insert_audit_result
from gbp_audit.errors import PersistenceError
from gbp_audit.vendors.google_places import GooglePlacesError

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)

# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never touches the database."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "rank_provider": settings.rank_provider,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/api/rank-tracking/get-rank")
def get_rank() -> Any:
    """Rank one business. Required JSON fields: businessName, latitude, longitude."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    query = rank_tracker.query_from_payload(payload)
    if query is None:
        return (
            jsonify(
                {
                    "error": "Missing required fields",
                    "message": "businessName, latitude, and longitude are required",
                }
            ),
            400,
        )

    try:
        result = rank_tracker.find_rank(query)
    except GooglePlacesError as exc:
        return jsonify({"error": "Google Places API error", "message": str(exc)}), 500
    except ConfigError as exc:
        logger.error("Rank tracking misconfigured: %s", exc)
        return jsonify({"error": "Rank tracking unavailable", "message": str(exc)}), 500
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error fetching rank: %s", exc)
        return jsonify({"error": "Internal server error", "message": str(exc)}), 500

    return jsonify(result.to_dict()), 200


@app.post("/api/rank-tracking/batch-rank")
def batch_rank() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    locations = payload.get("locations")
    if not isinstance(locations, list):
        return jsonify({"error": "Invalid request", "message": "locations array is required"}), 400

    logger.info("Batch rank request for %d locations", len(locations))
    return jsonify({"success": True, "results": rank_tracker.find_ranks(locations)}), 200


@app.post("/api/audit-results")
def save_audit_result() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    if not payload.get("locationId") or not isinstance(payload.get("score"), dict):
        return jsonify({"success": False, "error": "locationId and score are required"}), 400

    record = {
        key: payload.get(key)
        for key in (
            "userId",
            "userEmail",
            "locationId",
            "locationName",
            "performance",
            "recommendations",
            "score",
            "dateRange",
            "metadata",
        )
    }
    try:
        stored = insert_audit_result(record)
    except (PersistenceError, RuntimeError) as exc:
        logger.error("Error saving audit result: %s", exc)
        return jsonify({"success": False, "error": str(exc)}), 500

    return jsonify({"success": True, "data": stored}), 200


@app.get("/api/audit-results")
def list_audit_results() -> Any:
    user_id = request.args.get("userId")
    location_id = request.args.get("locationId")
    if not user_id and not location_id:
        return jsonify({"success": False, "error": "userId is required"}), 400

    try:
        limit = int(request.args.get("limit", "10"))
    except ValueError:
        return jsonify({"success": False, "error": "limit must be numeric"}), 400

    try:
        results = fetch_audit_results(user_id=user_id, location_id=location_id, limit=limit)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error getting audit results: %s", exc)
        return jsonify({"success": False, "error": str(exc)}), 500

    return jsonify({"success": True, "data": results}), 200


def main() -> None:
    env_port = os.getenv("PORT")
    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
