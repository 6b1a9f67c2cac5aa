"""Session-scoped state for the audit dashboard.

One store is created per signed-in session and reset on logout. The
orchestrator writes to it; the presentation layer only reads.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from gbp_audit.etl.transform import to_profile_snapshot
from gbp_audit.models import AuditScore, PerformanceMetric, ProfileSnapshot

STATUS_IDLE = "idle"
STATUS_CONNECTED = "connected"
STATUS_UNAVAILABLE = "unavailable"


class AuditStore:
    def __init__(
        self,
        locations: Optional[Mapping[str, Mapping[str, Any]]] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> None:
        self._lock = threading.RLock()
        self.user_id = user_id
        self.user_email = user_email
        self._profiles: Dict[str, ProfileSnapshot] = {}
        self.selected_location_id: Optional[str] = None
        self.current_score: Optional[AuditScore] = None
        self.metrics: List[PerformanceMetric] = []
        self.last_updated_at: Optional[datetime] = None
        self.is_refreshing = False
        self.status = STATUS_IDLE
        self.last_error: Optional[str] = None
        for location_id, raw in (locations or {}).items():
            self.set_profile(location_id, raw)

    def set_profile(self, location_id: str, raw: Optional[Mapping[str, Any]]) -> None:
        snapshot = to_profile_snapshot(raw)
        with self._lock:
            if snapshot is None:
                self._profiles.pop(location_id, None)
            else:
                self._profiles[location_id] = snapshot

    def profile_for(self, location_id: str) -> Optional[ProfileSnapshot]:
        with self._lock:
            return self._profiles.get(location_id)

    def location_name(self, location_id: str) -> Optional[str]:
        profile = self.profile_for(location_id)
        return profile.business_name if profile else None

    def select(self, location_id: Optional[str]) -> bool:
        """Select a location; returns True when the selection changed."""
        with self._lock:
            if location_id == self.selected_location_id:
                return False
            self.selected_location_id = location_id
            return True

    def apply_success(self, score: AuditScore, metrics: List[PerformanceMetric], at: datetime) -> None:
        with self._lock:
            self.current_score = score
            self.metrics = list(metrics)
            self.last_updated_at = at
            self.status = STATUS_CONNECTED
            self.last_error = None

    def apply_failure(self, message: str) -> None:
        """Clear the score; the last successful timestamp is kept for staleness checks."""
        with self._lock:
            self.current_score = None
            self.metrics = []
            self.status = STATUS_UNAVAILABLE
            self.last_error = message

    def set_refreshing(self, value: bool) -> None:
        with self._lock:
            self.is_refreshing = value

    def reset(self) -> None:
        with self._lock:
            self._profiles.clear()
            self.user_id = None
            self.user_email = None
            self.selected_location_id = None
            self.current_score = None
            self.metrics = []
            self.last_updated_at = None
            self.is_refreshing = False
            self.status = STATUS_IDLE
            self.last_error = None

