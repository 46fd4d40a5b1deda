"""
Shared fixtures: a stub API per test and client components wired to it.
"""
import pytest

from splitdesk.api_client import ApiClient
from splitdesk.resources import ResourceStore
from splitdesk.session import Session
from splitdesk.token_store import InMemoryTokenStore
from stub_backend import FlakyTransport, StubBackend

BASE_URL = "http://splitdesk.test"


@pytest.fixture
def backend() -> StubBackend:
    stub = StubBackend()
    stub.add_user("alice", "secret", "alice@example.com")
    return stub


@pytest.fixture
def transport(backend: StubBackend) -> FlakyTransport:
    return FlakyTransport(backend.transport())


@pytest.fixture
def tokens() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def api(transport: FlakyTransport, tokens: InMemoryTokenStore) -> ApiClient:
    return ApiClient(BASE_URL, tokens, transport=transport)


@pytest.fixture
def session(api: ApiClient, tokens: InMemoryTokenStore) -> Session:
    return Session(api, tokens)


@pytest.fixture
def todos(api: ApiClient) -> ResourceStore:
    return ResourceStore(api, "todos")
