import pytest

from splitdesk.guard import (
    ALLOW,
    DEFAULT_VIEW,
    ENTRY_VIEWS,
    LOGIN_VIEW,
    OPEN_VIEWS,
    PROTECTED_VIEWS,
    Redirect,
    View,
    admit,
    resolve,
)
from splitdesk.session import SessionStatus

NOT_AUTHENTICATED = [SessionStatus.ANONYMOUS, SessionStatus.AUTHENTICATING, SessionStatus.EXPIRED]


@pytest.mark.parametrize(
    "view, status, expected",
    [
        ("todos", "anonymous", Redirect(View.LOGIN)),
        ("login", "authenticated", Redirect(View.TODOS)),
        ("todos", "authenticated", ALLOW),
        ("home", "anonymous", ALLOW),
        ("register", "expired", ALLOW),
    ],
)
def test_decisions(view, status, expected):
    assert admit(view, status) == expected


@pytest.mark.parametrize("status", NOT_AUTHENTICATED)
@pytest.mark.parametrize("view", sorted(PROTECTED_VIEWS))
def test_protected_views_need_authentication(view, status):
    assert admit(view, status) == Redirect(LOGIN_VIEW)


@pytest.mark.parametrize("view", sorted(ENTRY_VIEWS))
def test_entry_views_redirect_when_authenticated(view):
    assert admit(view, SessionStatus.AUTHENTICATED) == Redirect(DEFAULT_VIEW)


@pytest.mark.parametrize("status", list(SessionStatus))
@pytest.mark.parametrize("view", sorted(OPEN_VIEWS))
def test_open_views_always_allowed(view, status):
    assert admit(view, status) is ALLOW


def test_view_groups_cover_every_view():
    assert ENTRY_VIEWS | PROTECTED_VIEWS | OPEN_VIEWS == set(View)
    assert View.ABOUT_US in OPEN_VIEWS


def test_redirect_targets_are_allowed():
    # following a redirect never lands on another redirect
    for status in SessionStatus:
        for view in View:
            assert admit(resolve(view, status), status) is ALLOW


def test_resolve():
    assert resolve("notes", SessionStatus.EXPIRED) is View.LOGIN
    assert resolve("register", SessionStatus.AUTHENTICATED) is View.TODOS
    assert resolve("faqs", SessionStatus.ANONYMOUS) is View.FAQS


def test_unknown_names_are_rejected():
    with pytest.raises(ValueError):
        admit("dashboard", SessionStatus.ANONYMOUS)
    with pytest.raises(ValueError):
        admit("todos", "signed-in")
