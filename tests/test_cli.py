import json

import pytest

from splitdesk.cli import main


@pytest.fixture
def credential_file(tmp_path, monkeypatch):
    path = tmp_path / "credential.json"
    monkeypatch.setenv("SPLITDESK_TOKEN_FILE", str(path))
    monkeypatch.delenv("SPLITDESK_LOG_LEVEL", raising=False)
    return path


@pytest.fixture
def cli(backend, credential_file):
    def invoke(*argv):
        return main(list(argv), transport=backend.transport())

    return invoke


def test_login_persists_credential(cli, backend, credential_file, capsys):
    backend.issue_tokens("abc123")
    assert cli("login", "alice", "--password", "secret") == 0
    assert "Logged in as alice" in capsys.readouterr().out
    assert json.loads(credential_file.read_text())["token"] == "abc123"

    assert cli("whoami") == 0
    assert "alice <alice@example.com>" in capsys.readouterr().out


def test_bad_password(cli, credential_file, capsys):
    assert cli("login", "alice", "--password", "wrong") == 1
    assert "Error:" in capsys.readouterr().err
    assert not credential_file.exists()


def test_commands_need_login(cli, capsys):
    assert cli("list") == 1
    assert "Not logged in" in capsys.readouterr().err


def test_todo_lifecycle(cli, backend, capsys):
    backend.set_next_item_id(7)
    cli("login", "alice", "--password", "secret")
    capsys.readouterr()

    assert cli("add", "Buy milk") == 0
    assert "[ ]    7  Buy milk" in capsys.readouterr().out

    assert cli("done", "7") == 0
    assert "[x]    7  Buy milk" in capsys.readouterr().out

    assert cli("edit", "7", "--title", "Buy oat milk") == 0
    assert "Buy oat milk" in capsys.readouterr().out

    assert cli("list") == 0
    assert "Buy oat milk" in capsys.readouterr().out

    assert cli("rm", "7") == 0
    assert cli("list") == 0
    assert "No todos yet." in capsys.readouterr().out


def test_notes_flag_uses_notes_collection(cli, backend, capsys):
    cli("login", "alice", "--password", "secret")
    assert cli("--notes", "add", "Standup", "--body", "ship it") == 0
    capsys.readouterr()
    assert cli("list") == 0
    assert "No todos yet." in capsys.readouterr().out
    assert cli("--notes", "list") == 0
    assert "ship it" in capsys.readouterr().out


def test_unknown_id(cli, capsys):
    cli("login", "alice", "--password", "secret")
    assert cli("rm", "99") == 1
    assert "99" in capsys.readouterr().err


def test_edit_without_changes(cli, capsys):
    cli("login", "alice", "--password", "secret")
    cli("add", "x")
    capsys.readouterr()
    assert cli("edit", "1") == 1
    assert "nothing to change" in capsys.readouterr().err


def test_logout_forgets_credential(cli, credential_file, capsys):
    cli("login", "alice", "--password", "secret")
    assert credential_file.exists()
    assert cli("logout") == 0
    assert not credential_file.exists()
    assert cli("whoami") == 1


def test_revoked_credential_is_discarded(cli, backend, credential_file, capsys):
    backend.issue_tokens("abc123")
    cli("login", "alice", "--password", "secret")
    backend.revoke("abc123")
    assert cli("list") == 1
    assert not credential_file.exists()


def test_register_then_login(cli, capsys):
    assert cli("register", "bob", "bob@example.com", "--password", "pw") == 0
    assert "Registered bob" in capsys.readouterr().out
    assert cli("login", "bob", "--password", "pw") == 0


def test_health(cli, capsys):
    assert cli("health") == 0
    assert "Healthy" in capsys.readouterr().out
