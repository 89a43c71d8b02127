import threading
from concurrent.futures import Future
from typing import Optional

import httpx

from endpoints import AUTH
from .session_store import Session
from .utils import get_logger


class RefreshCoordinator:
    """Single-flight exchange of the refresh token for a new credential pair.

    At most one exchange runs at a time. Callers arriving while it runs wait
    on the same pending future and get its result instead of posting again.
    The slot is emptied as soon as the outcome is known, success or not, so
    the next expiry starts a fresh cycle.
    """

    def __init__(self, session: Session, http: httpx.Client) -> None:
        self._session = session
        self._http = http
        self._lock = threading.Lock()
        self._pending: Optional[Future] = None
        self.logger = get_logger("netra.auth")

    @property
    def refreshing(self) -> bool:
        with self._lock:
            return self._pending is not None

    def refresh(self, stale_access: Optional[str] = None) -> bool:
        """Return True once the session holds a usable credential pair.

        ``stale_access`` is the access token a rejected request carried. If
        the session already moved past it, an earlier cycle resolved this
        expiry and no new exchange is started.
        """
        with self._lock:
            pending = self._pending
            owner = pending is None
            if owner:
                current = self._session.access
                if stale_access is not None and current is not None and current != stale_access:
                    self.logger.debug("Credential already refreshed, skipping exchange")
                    return True
                pending = Future()
                self._pending = pending

        if not owner:
            self.logger.debug("Waiting for in-flight token refresh")
            return pending.result()

        try:
            ok = self._exchange()
        except BaseException as exc:
            with self._lock:
                self._pending = None
                pending.set_exception(exc)
            raise
        with self._lock:
            self._pending = None
            pending.set_result(ok)
        return ok

    def _exchange(self) -> bool:
        refresh = self._session.refresh
        if not refresh:
            return False
        route = AUTH["refresh_token"]
        self.logger.debug("HTTP %s %s", route["method"], route["path"])
        try:
            resp = self._http.request(
                route["method"],
                route["path"],
                json={"refresh_token": refresh},
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            data = resp.json()
            access = str(data["access_token"])
            new_refresh = str(data["refresh_token"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            self.logger.error("Token refresh failed: %s", exc)
            return False
        self._session.set_tokens(access, new_refresh)
        self.logger.info("Access token refreshed")
        return True
