"""Error taxonomy shared by the drawing workflows, engine, and schedulers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence


@dataclass(frozen=True)
class FieldError:
    """A single violated rule on a proposed drawing configuration.

    Attributes
    ----------
    field : str
        Configuration key the rule applies to (e.g. ``"draw_time"``).
    code : str
        Stable machine readable identifier of the rule.
    message : str
        Human readable description shown to the organizer.
    """

    field: str
    code: str
    message: str

    def to_json(self) -> dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}


class DrawingError(Exception):
    """Base class for every error raised by the drawing core."""

    status_code: int = 400
    kind: str = "drawing_error"

    def __init__(self, message: str, *, drawing_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.drawing_id = drawing_id

    def to_dict(self) -> dict[str, Any]:
        """Return a structured payload suitable for an API error response."""
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.drawing_id is not None:
            payload["drawing_id"] = self.drawing_id
        return payload


class ValidationError(DrawingError):
    """A proposed configuration violates one or more field rules."""

    status_code = 422
    kind = "validation_error"

    def __init__(self, errors: Sequence[FieldError]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(err.message for err in self.errors) or "invalid")

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["errors"] = [err.to_json() for err in self.errors]
        return payload


class PermissionDeniedError(DrawingError, PermissionError):
    """The requester lacks rights for a state-changing action."""

    status_code = 403
    kind = "permission_denied"


class StateConflictError(DrawingError):
    """The requested transition is invalid for the drawing's current state."""

    status_code = 409
    kind = "state_conflict"


class NotFoundError(DrawingError, LookupError):
    """No drawing exists with the requested id."""

    status_code = 404
    kind = "not_found"


class DrawSystemError(DrawingError):
    """Unexpected failure while resolving a drawing.

    By the time this is raised the drawing has already been moved to
    ``cancelled`` with the failure text as its reason.
    """

    status_code = 500
    kind = "system_error"

    def to_dict(self) -> dict[str, Any]:
        # Internal detail stays in the logs and the drawing's reason.
        payload: dict[str, Any] = {"error": self.kind, "message": "internal error"}
        if self.drawing_id is not None:
            payload["drawing_id"] = self.drawing_id
        return payload


__all__ = [
    "FieldError",
    "DrawingError",
    "ValidationError",
    "PermissionDeniedError",
    "StateConflictError",
    "NotFoundError",
    "DrawSystemError",
]
