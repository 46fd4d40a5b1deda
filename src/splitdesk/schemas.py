from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import TransportFailure

TITLE_MAX_LENGTH = 200

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: Type[ModelT], payload: Any) -> ModelT:
    """
    Validate a 2xx response body against ``model``.

    A body that does not match is reported as a TransportFailure: the
    exchange produced no usable answer.
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise TransportFailure(f"Unexpected {model.__name__} payload from server") from e


def _normalize_title(v: str) -> str:
    """
    Strip whitespace and enforce 1..200 length.
    """
    s = v.strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise ValueError(f"title length must be between 1 and {TITLE_MAX_LENGTH} characters")
    return s


def _new_local_key() -> str:
    return uuid.uuid4().hex


# PUBLIC_INTERFACE
class User(BaseModel):
    """
    Identity of the authenticated user as reported by the server.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int = Field(..., description="Unique identifier of the user")
    username: str = Field(..., description="Login identifier")
    email: Optional[str] = Field(default=None, description="Contact address given at registration")


# PUBLIC_INTERFACE
class Credential(BaseModel):
    """
    Opaque bearer token plus an optional expiry hint.

    The hint is advisory: the server stays the authority on whether the
    token is still accepted.
    """

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1, description="Bearer token")
    expires_at: Optional[datetime] = Field(default=None, description="Expiry hint reported by the server")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        current = now or datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current >= expires


# PUBLIC_INTERFACE
class LoginResponse(BaseModel):
    """
    Payload returned by the credential-exchange endpoint.
    """

    model_config = ConfigDict(extra="ignore")

    token: str = Field(..., min_length=1)
    expires_at: Optional[datetime] = None
    user: User

    def credential(self) -> Credential:
        return Credential(token=self.token, expires_at=self.expires_at)


# PUBLIC_INTERFACE
class RegisterRequest(BaseModel):
    """
    Schema for the anonymous registration call.
    """

    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, description="Contact address")

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("username must not be blank")
        return s

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        s = v.strip()
        if "@" not in s:
            raise ValueError("email must contain '@'")
        return s


# PUBLIC_INTERFACE
class ResourceCreate(BaseModel):
    """
    Schema for creating a new todo or note.
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "body": "Two litres, semi-skimmed",
                "completed": False,
            }
        },
    )

    title: str = Field(..., description="Short title", min_length=1, max_length=TITLE_MAX_LENGTH)
    body: Optional[str] = Field(default=None, description="Optional free text")
    completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> Any:
        return _normalize_title(v) if isinstance(v, str) else v


# PUBLIC_INTERFACE
class ResourceUpdate(BaseModel):
    """
    Schema for updating an existing todo or note.
    All fields are optional; only provided fields are sent and applied.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, description="Short title", min_length=1, max_length=TITLE_MAX_LENGTH)
    body: Optional[str] = Field(default=None, description="Optional free text")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("title cannot be null")
        return _normalize_title(v) if isinstance(v, str) else v

    @field_validator("completed", mode="before")
    @classmethod
    def validate_completed(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("completed cannot be null")
        return v

    def changes(self) -> Dict[str, Any]:
        """Return only the fields the caller provided."""
        return self.model_dump(exclude_unset=True)


# PUBLIC_INTERFACE
class Resource(BaseModel):
    """
    A todo or note as held in the local snapshot.

    ``id`` and ``created_at`` are assigned by the server; an entry without
    an id is pending. ``local_key`` identifies the entry inside the client
    and is never sent to the server.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "id": 7,
                "title": "Buy milk",
                "body": None,
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456",
            }
        },
    )

    id: Optional[int] = Field(default=None, description="Server-assigned identifier")
    title: str = Field(..., description="Short title")
    body: Optional[str] = Field(default=None, description="Optional free text")
    completed: bool = Field(default=False, description="Completion status flag")
    created_at: Optional[datetime] = Field(default=None, description="Creation timestamp")
    local_key: str = Field(default_factory=_new_local_key, exclude=True, repr=False)

    @property
    def is_pending(self) -> bool:
        return self.id is None

    @classmethod
    def pending_from(cls, data: ResourceCreate) -> "Resource":
        return cls(title=data.title, body=data.body, completed=data.completed)
