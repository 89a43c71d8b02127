"""Unit tests for session_store.py — credential pair and session file."""

import base64
import json
import os
import stat

import pytest

from netra.session_store import (
    CredentialPair,
    Session,
    delete_session,
    load_session,
    save_session,
    token_subject,
)


def _jwt(claims: dict) -> str:
    body = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")
    return f"eyJhbGciOiJIUzI1NiJ9.{body}.signature"


class TestSession:
    def test_pair_is_replaced_atomically(self) -> None:
        session = Session("a1", "r1")
        session.set_tokens("a2", "r2")
        assert session.tokens() == CredentialPair("a2", "r2")

    def test_clear(self) -> None:
        session = Session("a1", "r1")
        session.clear()
        assert session.tokens() == CredentialPair(None, None)
        assert session.is_authenticated() is False

    def test_user_id_from_access_token(self) -> None:
        session = Session(_jwt({"sub": "user-42", "exp": 1}), "r")
        assert session.user_id() == "user-42"

    def test_user_id_without_login(self) -> None:
        assert Session().user_id() is None


class TestTokenSubject:
    def test_not_a_jwt(self) -> None:
        assert token_subject("opaque-token") is None

    def test_garbage_body(self) -> None:
        assert token_subject("a.!!!!.c") is None

    def test_missing_sub(self) -> None:
        assert token_subject(_jwt({"exp": 1})) is None


class TestSessionFile:
    def test_round_trip(self, tmp_path) -> None:
        path = str(tmp_path / "nested" / "session.json")
        save_session(path, Session("a1", "r1"))
        loaded = load_session(path)
        assert loaded.tokens() == CredentialPair("a1", "r1")

    def test_file_is_private(self, tmp_path) -> None:
        path = tmp_path / "session.json"
        save_session(str(path), Session("a1", "r1"))
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_file_layout(self, tmp_path) -> None:
        path = tmp_path / "session.json"
        save_session(str(path), Session("a1", "r1"))
        assert json.loads(path.read_text()) == {"tokens": {"access_token": "a1", "refresh_token": "r1"}}

    def test_rejects_non_object(self, tmp_path) -> None:
        path = tmp_path / "session.json"
        path.write_text("[]")
        with pytest.raises(ValueError):
            load_session(str(path))

    def test_delete_is_idempotent(self, tmp_path) -> None:
        path = tmp_path / "session.json"
        save_session(str(path), Session("a1", "r1"))
        delete_session(str(path))
        delete_session(str(path))
        assert not path.exists()
