"""
Splitdesk client session and data-synchronization layer.

Exposes the wired client facade and the component classes for callers that
assemble them differently (tests, embedding applications).
"""

from .api_client import ApiClient
from .client import Navigator, SplitdeskClient
from .errors import (
    AuthRequired,
    Busy,
    ClientError,
    InvalidTransition,
    NotFound,
    ServerFailure,
    TransportFailure,
    ValidationFailure,
)
from .guard import Allow, Redirect, View, admit
from .resources import ResourceStore
from .schemas import Credential, Resource, User
from .session import Session, SessionStatus
from .token_store import FileTokenStore, InMemoryTokenStore, TokenStore, get_token_store

__all__ = [
    "ApiClient",
    "Navigator",
    "SplitdeskClient",
    "AuthRequired",
    "Busy",
    "ClientError",
    "InvalidTransition",
    "NotFound",
    "ServerFailure",
    "TransportFailure",
    "ValidationFailure",
    "Allow",
    "Redirect",
    "View",
    "admit",
    "ResourceStore",
    "Credential",
    "Resource",
    "User",
    "Session",
    "SessionStatus",
    "FileTokenStore",
    "InMemoryTokenStore",
    "TokenStore",
    "get_token_store",
]
