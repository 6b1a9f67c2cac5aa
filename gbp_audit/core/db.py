"""Database helpers for stored audit results."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import extras, pool

from gbp_audit.core.config import get_settings
from gbp_audit.errors import PersistenceError

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def _prepare_params(record: Dict[str, Any]) -> Dict[str, Any]:
    score = record.get("score") or {}
    overall = score.get("overall") if isinstance(score, dict) else None
    return {
        "location_id": record.get("locationId"),
        "user_id": record.get("userId"),
        "audit_data": extras.Json(record),
        "score": overall,
    }


_INSERT_AUDIT_RESULT = """
INSERT INTO audit_results (
    location_id,
    user_id,
    audit_data,
    score
) VALUES (
    %(location_id)s,
    %(user_id)s,
    %(audit_data)s,
    %(score)s
)
RETURNING id, created_at;
"""

_SELECT_BY_USER = """
SELECT id, location_id, user_id, audit_data, score, created_at
FROM audit_results
WHERE user_id = %(user_id)s
ORDER BY created_at DESC
LIMIT %(limit)s;
"""

_SELECT_BY_LOCATION = """
SELECT id, location_id, user_id, audit_data, score, created_at
FROM audit_results
WHERE location_id = %(location_id)s
ORDER BY created_at DESC
LIMIT %(limit)s;
"""


def insert_audit_result(record: Dict[str, Any]) -> Dict[str, Any]:
    """Store one audit run record; each run is written once."""
    params = _prepare_params(record)
    if not params["location_id"]:
        raise ValueError("locationId is required to store an audit result")

    try:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_INSERT_AUDIT_RESULT, params)
                row = cur.fetchone()
            conn.commit()
    except psycopg2.Error as exc:
        logger.error("Failed to insert audit result for %s: %s", params["location_id"], exc)
        raise PersistenceError(str(exc)) from exc

    logger.debug("Stored audit result for %s", params["location_id"])
    audit_id, created_at = (row or (None, None))
    return {
        "id": str(audit_id) if audit_id is not None else None,
        "createdAt": created_at.isoformat() if created_at is not None else None,
    }


def fetch_audit_results(
    *, user_id: Optional[str] = None, location_id: Optional[str] = None, limit: int = 10
) -> List[Dict[str, Any]]:
    """Most recent audit results for a user or a location."""
    if user_id:
        sql, params = _SELECT_BY_USER, {"user_id": user_id, "limit": limit}
    elif location_id:
        sql, params = _SELECT_BY_LOCATION, {"location_id": location_id, "limit": limit}
    else:
        raise ValueError("user_id or location_id is required")

    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()

    results = []
    for row in rows:
        item = dict(row)
        if item.get("id") is not None:
            item["id"] = str(item["id"])
        if item.get("created_at") is not None:
            item["created_at"] = item["created_at"].isoformat()
        results.append(item)
    return results
