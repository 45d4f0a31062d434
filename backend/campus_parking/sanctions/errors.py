"""Error taxonomy for sanction operations."""

from typing import Any, Dict, Optional


class SanctionError(Exception):
    """
    Base class for sanction engine failures

    Attributes:
        detail: Human-readable description returned to callers
        field: Offending input field, when the failure is about one
    """
    kind = "sanction_error"

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "error": self.kind, "details": self.detail}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(SanctionError):
    """Missing or out-of-range input; nothing was written"""
    kind = "validation_error"


class NotFoundError(SanctionError):
    """Referenced vehicle or violation does not exist; nothing was written"""
    kind = "not_found"


class ConflictError(SanctionError):
    """Precondition violated or retries exhausted; nothing was written"""
    kind = "conflict"


class SweepIncompleteError(SanctionError):
    """
    A sweep committed only part of what it found

    Committed chunks stay committed; report holds what went through.
    """
    kind = "sweep_incomplete"

    def __init__(self, detail: str, report: "Any"):
        super().__init__(detail)
        self.report = report

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(self.report.to_dict())
        return payload
