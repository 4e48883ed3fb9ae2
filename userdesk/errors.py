from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .models import FieldError


DEFAULT_MESSAGE = "An unexpected error occurred"


class ApiError(Exception):
    """Uniform failure shape seen by views: message, optional status, field errors."""

    def __init__(
        self,
        message: str = DEFAULT_MESSAGE,
        status: Optional[int] = None,
        errors: Optional[List[FieldError]] = None,
        timeout: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors or []
        self.timeout = timeout

    @property
    def retryable(self) -> bool:
        return self.timeout or self.status is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "errors": [e.model_dump(exclude_none=True) for e in self.errors],
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status!r})"


class ValidationFailed(ApiError):
    """Input rejected before any request was sent."""

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailed":
        errors = [
            FieldError(field=".".join(str(p) for p in err.get("loc", ())) or None, message=err.get("msg", ""))
            for err in exc.errors()
        ]
        return cls("Validation failed", status=None, errors=errors)

    @property
    def retryable(self) -> bool:
        return False


class SessionExpiredError(ApiError):
    """A protected request came back 401; the session has already been cleared."""

    def __init__(self, message: str = "Session expired", redirect_to: str = "/login"):
        super().__init__(message, status=401)
        self.redirect_to = redirect_to


def parse_field_errors(raw: Any) -> List[FieldError]:
    if not isinstance(raw, list):
        return []
    out: List[FieldError] = []
    for item in raw:
        if isinstance(item, dict) and item.get("message"):
            out.append(FieldError(field=item.get("field"), message=str(item["message"])))
    return out
