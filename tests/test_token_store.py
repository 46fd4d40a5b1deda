import json
from datetime import datetime, timedelta, timezone

from splitdesk.schemas import Credential
from splitdesk.settings import get_settings
from splitdesk.token_store import FileTokenStore, InMemoryTokenStore, get_token_store


class TestInMemoryTokenStore:
    def test_starts_empty(self):
        store = InMemoryTokenStore()
        assert store.get() is None
        assert store.has_credential() is False

    def test_last_write_wins(self):
        store = InMemoryTokenStore()
        store.set(Credential(token="first"))
        store.set(Credential(token="second"))
        assert store.get().token == "second"

    def test_clear(self):
        store = InMemoryTokenStore(Credential(token="abc123"))
        store.clear()
        assert store.get() is None
        # Clearing twice is harmless
        store.clear()
        assert store.get() is None


class TestFileTokenStore:
    def test_survives_a_new_instance(self, tmp_path):
        path = tmp_path / "nested" / "credential.json"
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
        FileTokenStore(str(path)).set(Credential(token="abc123", expires_at=expires))

        reloaded = FileTokenStore(str(path))
        cred = reloaded.get()
        assert cred is not None
        assert cred.token == "abc123"
        assert cred.expires_at == expires

    def test_clear_removes_file(self, tmp_path):
        path = tmp_path / "credential.json"
        store = FileTokenStore(str(path))
        store.set(Credential(token="abc123"))
        assert path.exists()

        store.clear()
        assert not path.exists()
        assert FileTokenStore(str(path)).get() is None

    def test_file_holds_only_the_credential(self, tmp_path):
        path = tmp_path / "credential.json"
        FileTokenStore(str(path)).set(Credential(token="abc123"))
        data = json.loads(path.read_text())
        assert set(data) == {"token", "expires_at"}

    def test_malformed_file_counts_as_empty(self, tmp_path):
        path = tmp_path / "credential.json"
        path.write_text("{not json")
        assert FileTokenStore(str(path)).get() is None

        path.write_text(json.dumps({"token": ""}))
        assert FileTokenStore(str(path)).get() is None


class TestFactory:
    def test_memory_backend_by_default(self, monkeypatch):
        monkeypatch.delenv("SPLITDESK_TOKEN_BACKEND", raising=False)
        assert isinstance(get_token_store(get_settings()), InMemoryTokenStore)
        assert not isinstance(get_token_store(get_settings()), FileTokenStore)

    def test_file_backend(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SPLITDESK_TOKEN_BACKEND", "file")
        monkeypatch.setenv("SPLITDESK_TOKEN_FILE", str(tmp_path / "cred.json"))
        store = get_token_store()
        assert isinstance(store, FileTokenStore)
        assert store.path == tmp_path / "cred.json"


class TestCredentialExpiryHint:
    def test_no_hint_never_expires(self):
        assert Credential(token="t").is_expired() is False

    def test_hint_in_the_past(self):
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        assert Credential(token="t", expires_at=past).is_expired() is True

    def test_naive_hint_is_treated_as_utc(self):
        now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        cred = Credential(token="t", expires_at=datetime(2025, 1, 1, 13, 0))
        assert cred.is_expired(now) is False
        assert cred.is_expired(now + timedelta(hours=2)) is True
