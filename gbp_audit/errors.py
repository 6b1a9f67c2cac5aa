"""Exception types shared by the audit pipeline."""


class AuditError(RuntimeError):
    """Base class for audit engine failures."""


class SourceUnavailableError(AuditError):
    """Raised when an upstream data source cannot be used for this run."""

    def __init__(self, source: str, message: str, status_code=None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status_code = status_code


class SourceAccessGatedError(SourceUnavailableError):
    """Upstream answered with an insufficient-permission status; treated as absence."""


class AuditUnavailableError(AuditError):
    """Raised when no upstream source produced usable data."""

    def __init__(self, location_id: str):
        super().__init__(f"performance data unavailable for location {location_id}")
        self.location_id = location_id


class RankLookupError(AuditError):
    """Raised when the rank-lookup service fails or answers garbage."""


class PersistenceError(AuditError):
    """Raised when an audit run record cannot be written."""
