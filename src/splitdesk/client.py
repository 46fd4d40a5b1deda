from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from .api_client import ApiClient
from .guard import Decision, Redirect, View, admit
from .resources import ResourceStore
from .session import Session, SessionStatus
from .settings import Settings, get_settings
from .token_store import TokenStore, get_token_store

logger = logging.getLogger(__name__)

COLLECTIONS = ("todos", "notes")


# PUBLIC_INTERFACE
class Navigator:
    """
    Tracks the displayed view and re-applies the route guard on every
    navigation and every session transition.
    """

    def __init__(self, session: Session, initial: Union[View, str] = View.HOME) -> None:
        self._session = session
        self._requested = View(initial)
        self._current = self._apply(self._requested)
        self._listeners: List[Callable[[View], None]] = []
        self._detach = session.subscribe(self._on_transition)

    @property
    def current_view(self) -> View:
        return self._current

    def on_change(self, listener: Callable[[View], None]) -> None:
        self._listeners.append(listener)

    def _apply(self, view: View) -> View:
        decision: Decision = admit(view, self._session.status)
        if isinstance(decision, Redirect):
            logger.debug("Redirecting %s -> %s (%s)", view.value, decision.target.value, self._session.status.value)
            return decision.target
        return view

    def _show(self, view: View) -> None:
        if view is self._current:
            return
        self._current = view
        for listener in list(self._listeners):
            listener(view)

    # PUBLIC_INTERFACE
    def navigate(self, view: Union[View, str]) -> View:
        """Request ``view``; returns the view actually shown."""
        self._requested = View(view)
        self._show(self._apply(self._requested))
        return self._current

    def _on_transition(self, previous: SessionStatus, current: SessionStatus) -> None:
        # the last requested view is kept across redirects, so logging in
        # again returns the user to the page that sent them to login
        self._show(self._apply(self._requested))

    def close(self) -> None:
        self._detach()


# PUBLIC_INTERFACE
class SplitdeskClient:
    """
    One process worth of session and synchronization state.

    Owns the token store, the API client, the session and one resource
    store per collection. Stores are emptied whenever the session leaves
    AUTHENTICATED.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        token_store: Optional[TokenStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.tokens = token_store if token_store is not None else get_token_store(self.settings)
        self.api = ApiClient.from_settings(self.tokens, self.settings, transport=transport)
        self.session = Session(self.api, self.tokens)
        self.stores: Dict[str, ResourceStore] = {name: ResourceStore(self.api, name) for name in COLLECTIONS}
        self.navigator = Navigator(self.session)
        self.session.subscribe(self._on_transition)

    @property
    def todos(self) -> ResourceStore:
        return self.stores["todos"]

    @property
    def notes(self) -> ResourceStore:
        return self.stores["notes"]

    def store(self, collection: str) -> ResourceStore:
        return self.stores[collection]

    def _on_transition(self, previous: SessionStatus, current: SessionStatus) -> None:
        if previous is SessionStatus.AUTHENTICATED and current is not SessionStatus.AUTHENTICATED:
            for store in self.stores.values():
                store.clear()

    async def aclose(self) -> None:
        self.navigator.close()
        self.session.close()
        await self.api.aclose()

    async def __aenter__(self) -> "SplitdeskClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
