"""
Typed failures raised by the session and synchronization layer.

Every non-success outcome of an operation surfaces as one of these. None of
them is fatal; the worst consequence is the session moving to EXPIRED.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

NON_FIELD_ERRORS = "non_field_errors"
_LOCATION_PREFIXES = ("body", "query", "path", "header")


def field_from_loc(loc: Any) -> str:
    """Pick the field name out of a pydantic/FastAPI error location."""
    if isinstance(loc, (list, tuple)):
        names = [str(part) for part in loc if part not in _LOCATION_PREFIXES]
        return names[-1] if names else NON_FIELD_ERRORS
    return str(loc) if loc else NON_FIELD_ERRORS


class ClientError(Exception):
    """Base class for every failure surfaced to callers."""


# PUBLIC_INTERFACE
class AuthRequired(ClientError):
    """
    The credential is missing or was rejected by the server (401/403).

    The request must not be retried with the same credential.
    """

    def __init__(self, message: str = "Authentication required", status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# PUBLIC_INTERFACE
class ValidationFailure(ClientError):
    """
    Caller-fixable request errors.

    Attributes:
        status_code: HTTP status reported by the server, or None when the
            payload was rejected locally before any request was sent.
        errors: mapping of field name to messages. Messages that do not
            belong to a field are stored under ``non_field_errors``.
    """

    def __init__(
        self,
        errors: Optional[Mapping[str, List[str]]] = None,
        status_code: Optional[int] = None,
        message: str = "Request validation failed",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors: Dict[str, List[str]] = {k: list(v) for k, v in (errors or {}).items()}

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailure":
        """Build a failure from a payload rejected locally, before sending."""
        errors: Dict[str, List[str]] = {}
        for item in exc.errors():
            errors.setdefault(field_from_loc(item.get("loc")), []).append(item.get("msg", "invalid"))
        return cls(errors)

    def __str__(self) -> str:
        if not self.errors:
            return self.args[0]
        parts = [f"{field}: {'; '.join(msgs)}" for field, msgs in self.errors.items()]
        return f"{self.args[0]} ({', '.join(parts)})"


# PUBLIC_INTERFACE
class TransportFailure(ClientError):
    """No usable response was received. Retrying is the caller's decision."""


class ServerFailure(TransportFailure):
    """The server answered with a 5xx status."""

    def __init__(self, status_code: int, message: str = "Server error") -> None:
        super().__init__(f"{message} ({status_code})")
        self.status_code = status_code


# PUBLIC_INTERFACE
class NotFound(ClientError):
    """The targeted resource is not in the local snapshot."""

    def __init__(self, resource_id: object) -> None:
        super().__init__(f"Resource {resource_id!r} not found")
        self.resource_id = resource_id


# PUBLIC_INTERFACE
class Busy(ClientError):
    """A conflicting operation is already in flight."""


class InvalidTransition(ClientError):
    """The requested session transition is not allowed from the current state."""
