"""
Session state machine.

States: ANONYMOUS, AUTHENTICATING, AUTHENTICATED, EXPIRED.

- ANONYMOUS/EXPIRED -> AUTHENTICATING on login (one attempt at a time)
- AUTHENTICATING -> AUTHENTICATED on a successful credential exchange
- AUTHENTICATING -> ANONYMOUS on any exchange failure
- AUTHENTICATED -> ANONYMOUS on logout
- AUTHENTICATED -> EXPIRED when the server rejects the current credential

The token store holds a credential exactly while the session is
AUTHENTICATED; it is written and cleared in the same synchronous step as
the transition, so a request dispatched after logout or expiry never
carries the old token.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from .api_client import ApiClient
from .errors import Busy, ClientError, InvalidTransition, ValidationFailure
from .events import Observable
from .schemas import Credential, LoginResponse, RegisterRequest, User, parse_payload
from .token_store import TokenStore

logger = logging.getLogger(__name__)

LOGIN_PATH = "/api/v1/auth/login/"
REGISTER_PATH = "/api/v1/auth/register/"
ME_PATH = "/api/v1/auth/me/"


class SessionStatus(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


# PUBLIC_INTERFACE
class Session(Observable):
    """
    Authority on whether the user is logged in.

    Subscribers are called as ``listener(previous, current)`` after every
    transition.
    """

    def __init__(self, api: ApiClient, token_store: TokenStore) -> None:
        super().__init__()
        self._api = api
        self._tokens = token_store
        self._status = SessionStatus.ANONYMOUS
        self._user: Optional[User] = None
        self._detach = api.on_credential_rejected(self.credential_rejected)

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._status is SessionStatus.AUTHENTICATED

    def _transition(self, status: SessionStatus, user: Optional[User] = None) -> None:
        previous = self._status
        self._status = status
        self._user = user if status is SessionStatus.AUTHENTICATED else None
        logger.info("Session %s -> %s", previous.value, status.value)
        self._notify(previous, status)

    def _begin_authenticating(self) -> None:
        if self._status is SessionStatus.AUTHENTICATING:
            raise Busy("A login attempt is already in progress")
        if self._status is SessionStatus.AUTHENTICATED:
            raise InvalidTransition("Already logged in; log out first")
        self._transition(SessionStatus.AUTHENTICATING)

    # PUBLIC_INTERFACE
    async def login(self, identifier: str, secret: str) -> User:
        """
        Exchange identifier/secret for a credential.

        Returns:
            The authenticated user.

        Raises:
            Busy: another login attempt is in flight.
            InvalidTransition: the session is already authenticated.
            ClientError: the exchange failed; the session is ANONYMOUS again
                and the token store is empty.
        """
        self._begin_authenticating()
        self._tokens.clear()
        try:
            payload = await self._api.request(
                "POST", LOGIN_PATH, {"username": identifier, "password": secret}
            )
            result = parse_payload(LoginResponse, payload)
        except (ClientError, asyncio.CancelledError) as e:
            logger.info("Login for %r failed: %s", identifier, e.__class__.__name__)
            self._tokens.clear()
            self._transition(SessionStatus.ANONYMOUS)
            raise

        self._tokens.set(result.credential())
        self._transition(SessionStatus.AUTHENTICATED, result.user)
        return result.user

    # PUBLIC_INTERFACE
    def logout(self) -> None:
        """
        Drop the credential and return to ANONYMOUS.

        Logging out while ANONYMOUS is a no-op; logging out while a login
        attempt is in flight raises Busy.
        """
        if self._status is SessionStatus.AUTHENTICATING:
            raise Busy("A login attempt is in progress")
        self._tokens.clear()
        if self._status is SessionStatus.ANONYMOUS:
            return
        self._transition(SessionStatus.ANONYMOUS)

    # PUBLIC_INTERFACE
    def credential_rejected(self, credential: Optional[Credential] = None) -> bool:
        """
        Handle the server rejecting ``credential`` (the current one when None).

        Moves AUTHENTICATED -> EXPIRED and clears the token store. Returns
        True if this call performed the transition. Repeated rejections and
        rejections of a credential that is no longer current do nothing.
        """
        if self._status is not SessionStatus.AUTHENTICATED:
            return False
        current = self._tokens.get()
        if credential is not None and (current is None or credential.token != current.token):
            logger.debug("Ignoring rejection of a superseded credential")
            return False
        self._tokens.clear()
        self._transition(SessionStatus.EXPIRED)
        return True

    # PUBLIC_INTERFACE
    async def register(self, identifier: str, secret: str, contact: str) -> User:
        """
        Create an account through the anonymous registration endpoint.

        Does not log in and does not change the session state.
        """
        try:
            data = RegisterRequest(username=identifier, password=secret, email=contact)
        except ValidationError as e:
            raise ValidationFailure.from_pydantic(e) from e
        payload = await self._api.request("POST", REGISTER_PATH, data.model_dump())
        return parse_payload(User, payload)

    # PUBLIC_INTERFACE
    async def restore(self) -> Optional[User]:
        """
        Adopt a credential persisted by an earlier run.

        Returns the user when the stored credential is still accepted, None
        when there is nothing to restore. A credential whose expiry hint has
        passed is cleared without a request. On any failure the stored
        credential is cleared and the session returns to ANONYMOUS.
        """
        credential = self._tokens.get()
        if credential is None:
            return None
        if credential.is_expired():
            logger.info("Stored credential has expired; discarding it")
            self._tokens.clear()
            return None

        self._begin_authenticating()
        try:
            payload = await self._api.request("GET", ME_PATH)
            user = parse_payload(User, payload)
        except (ClientError, asyncio.CancelledError):
            self._tokens.clear()
            self._transition(SessionStatus.ANONYMOUS)
            raise

        self._transition(SessionStatus.AUTHENTICATED, user)
        return user

    def close(self) -> None:
        """Stop listening for credential rejections."""
        self._detach()
