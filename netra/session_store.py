import base64
import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import DEFAULT_SESSION_PATH


@dataclass(frozen=True)
class CredentialPair:
    access: Optional[str] = None
    refresh: Optional[str] = None


class Session:
    """Holds the access/refresh pair for one login.

    Every read returns a whole ``CredentialPair`` taken under the lock, so a
    reader never sees the access token of one pair with the refresh token
    of another.
    """

    def __init__(self, access: Optional[str] = None, refresh: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._tokens = CredentialPair(access, refresh)

    def tokens(self) -> CredentialPair:
        with self._lock:
            return self._tokens

    @property
    def access(self) -> Optional[str]:
        return self.tokens().access

    @property
    def refresh(self) -> Optional[str]:
        return self.tokens().refresh

    def set_tokens(self, access: str, refresh: str) -> None:
        with self._lock:
            self._tokens = CredentialPair(access, refresh)

    def clear(self) -> None:
        with self._lock:
            self._tokens = CredentialPair()

    def is_authenticated(self) -> bool:
        return self.tokens().access is not None

    def user_id(self) -> Optional[str]:
        access = self.access
        return token_subject(access) if access else None


def token_subject(access: str) -> Optional[str]:
    """Read the ``sub`` claim of a JWT access token without verifying it."""
    parts = access.split(".")
    if len(parts) != 3:
        return None
    body = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(body.encode("ascii")))
    except ValueError:
        return None
    if not isinstance(claims, dict) or claims.get("sub") is None:
        return None
    return str(claims["sub"])


def save_session(path: str, session: Session) -> None:
    tokens = session.tokens()
    session_path = Path(path)
    session_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"tokens": {"access_token": tokens.access, "refresh_token": tokens.refresh}}
    session_path.write_text(json.dumps(payload, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
    os.chmod(session_path, 0o600)


def load_session(path: str = DEFAULT_SESSION_PATH) -> Session:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Session file must be a JSON object")
    tokens = data.get("tokens") or {}
    return Session(tokens.get("access_token"), tokens.get("refresh_token"))


def delete_session(path: str = DEFAULT_SESSION_PATH) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
