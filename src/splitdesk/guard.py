"""
Route guard: decides which view is reachable for a given session status.

Pure and stateless; re-evaluated on every navigation and every session
transition.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Union

from .session import SessionStatus


class View(str, Enum):
    HOME = "home"
    ABOUT_US = "aboutus"
    BLOGS = "blogs"
    PRICING = "pricing"
    FAQS = "faqs"
    LOGIN = "login"
    REGISTER = "register"
    TODOS = "todos"
    NOTES = "notes"
    CALENDAR = "calendar"
    POMODORO = "pomodoro"
    WORKSPACE = "workspace"


LOGIN_VIEW = View.LOGIN
DEFAULT_VIEW = View.TODOS

# login/registration: reachable only while not authenticated
ENTRY_VIEWS: FrozenSet[View] = frozenset({View.LOGIN, View.REGISTER})
PROTECTED_VIEWS: FrozenSet[View] = frozenset(
    {View.TODOS, View.NOTES, View.CALENDAR, View.POMODORO, View.WORKSPACE}
)
OPEN_VIEWS: FrozenSet[View] = frozenset(set(View) - ENTRY_VIEWS - PROTECTED_VIEWS)


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Redirect:
    target: View


Decision = Union[Allow, Redirect]
ALLOW = Allow()


# PUBLIC_INTERFACE
def admit(view: Union[View, str], status: Union[SessionStatus, str]) -> Decision:
    """
    Decide whether ``view`` may be shown in session ``status``.

    - protected views redirect to the login view unless authenticated
    - login/registration redirect to the default view when authenticated
    - every other view is allowed

    Raises:
        ValueError: unknown view or status name.
    """
    view = View(view)
    authenticated = SessionStatus(status) is SessionStatus.AUTHENTICATED

    if view in PROTECTED_VIEWS and not authenticated:
        return Redirect(LOGIN_VIEW)
    if view in ENTRY_VIEWS and authenticated:
        return Redirect(DEFAULT_VIEW)
    return ALLOW


def resolve(view: Union[View, str], status: Union[SessionStatus, str]) -> View:
    """Return the view that ends up displayed after following redirects."""
    decision = admit(view, status)
    if isinstance(decision, Redirect):
        return decision.target
    return View(view)
