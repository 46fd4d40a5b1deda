"""
HTTP transport for the resource API.

Every call reads the token store immediately before dispatch and attaches
the credential as a bearer header when one is present. Responses are
classified into a decoded payload (2xx) or one of the typed failures in
``splitdesk.errors``; nothing is retried here.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from .errors import (
    NON_FIELD_ERRORS,
    AuthRequired,
    ServerFailure,
    TransportFailure,
    ValidationFailure,
    field_from_loc,
)
from .events import Observable
from .schemas import Credential
from .settings import Settings, get_settings
from .token_store import TokenStore

logger = logging.getLogger(__name__)

AUTH_REJECTED_STATUSES = {401, 403}

RejectionListener = Callable[[Credential], None]


# PUBLIC_INTERFACE
def field_errors(payload: Any) -> Dict[str, List[str]]:
    """
    Normalize a server error body into ``{field: [messages]}``.

    Supported shapes:
    - FastAPI/pydantic: {"detail": [{"loc": [...], "msg": "..."}, ...]}
    - Plain detail: {"detail": "message"}
    - Flat field map: {"title": ["This field is required."]}
    - Anything else ends up under ``non_field_errors``.
    """
    errors: Dict[str, List[str]] = {}

    def add(field: str, message: Any) -> None:
        errors.setdefault(field, []).append(str(message))

    if isinstance(payload, Mapping):
        detail = payload.get("detail")
        if isinstance(detail, list):
            for item in detail:
                if isinstance(item, Mapping):
                    add(field_from_loc(item.get("loc")), item.get("msg", item))
                else:
                    add(NON_FIELD_ERRORS, item)
        elif detail is not None:
            add(NON_FIELD_ERRORS, detail)
        else:
            for key, value in payload.items():
                if key in ("error", "message"):
                    continue
                if isinstance(value, list):
                    for message in value:
                        add(str(key), message)
                else:
                    add(str(key), value)
            if not errors and payload.get("message"):
                add(NON_FIELD_ERRORS, payload["message"])
    elif isinstance(payload, list):
        for message in payload:
            add(NON_FIELD_ERRORS, message)
    elif payload:
        add(NON_FIELD_ERRORS, payload)
    return errors


def _decode(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


# PUBLIC_INTERFACE
class ApiClient(Observable):
    """
    Credential-injecting wrapper around ``httpx.AsyncClient``.

    Args:
        base_url: root of the resource API.
        token_store: where the current credential is read from.
        timeout: default per-request timeout in seconds; None means none.
        transport: optional httpx transport (tests inject ASGI/mock transports).
    """

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self._tokens = token_store
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_settings(
        cls,
        token_store: TokenStore,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ApiClient":
        settings = settings or get_settings()
        return cls(settings.api_base_url, token_store, timeout=settings.request_timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return str(self._http.base_url)

    # PUBLIC_INTERFACE
    def on_credential_rejected(self, listener: RejectionListener) -> Callable[[], None]:
        """
        Register a listener called with the attached credential whenever
        the server answers 401/403. Rejections of anonymous requests say
        nothing about a credential and are not reported.
        """
        return self.subscribe(listener)

    # PUBLIC_INTERFACE
    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> Any:
        """
        Issue one request and return the decoded payload of a 2xx response.

        Raises:
            AuthRequired: 401/403; rejection listeners have already run.
            ValidationFailure: any other 4xx, with normalized field errors.
            ServerFailure: 5xx.
            TransportFailure: no response was received.
        """
        method = method.upper()
        credential = self._tokens.get()
        headers: Dict[str, str] = {}
        if credential is not None:
            headers["Authorization"] = f"Bearer {credential.token}"

        logger.debug("%s %s (authenticated=%s)", method, path, credential is not None)
        try:
            response = await self._http.request(
                method,
                path,
                json=body,
                params=params,
                headers=headers,
                timeout=timeout,
            )
        except httpx.RequestError as e:
            logger.warning("%s %s failed without a response: %s", method, path, e.__class__.__name__)
            raise TransportFailure(f"{method} {path} failed: {e.__class__.__name__}") from e

        return self._classify(method, path, response, credential)

    def _classify(
        self,
        method: str,
        path: str,
        response: httpx.Response,
        credential: Optional[Credential],
    ) -> Any:
        status = response.status_code
        payload = _decode(response)

        if 200 <= status < 300:
            return payload

        if status in AUTH_REJECTED_STATUSES:
            logger.warning("%s %s rejected the credential (%d)", method, path, status)
            if credential is not None:
                self._notify(credential)
            raise AuthRequired(status_code=status)

        if 400 <= status < 500:
            errors = field_errors(payload)
            logger.warning("%s %s returned %d: %s", method, path, status, sorted(errors))
            raise ValidationFailure(errors, status_code=status)

        if status >= 500:
            logger.warning("%s %s returned server error %d", method, path, status)
            raise ServerFailure(status)

        # 1xx/3xx that httpx did not resolve
        raise TransportFailure(f"{method} {path} returned unexpected status {status}")

    # PUBLIC_INTERFACE
    async def health(self) -> Any:
        """Ping the service root and return its payload."""
        return await self.request("GET", "/")

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
