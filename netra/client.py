from typing import Any, Dict, Optional
import json

try:
    import httpx
except ModuleNotFoundError as exc:  # pragma: no cover - user environment dependency
    raise ModuleNotFoundError(
        "Missing dependency 'httpx'. Install with: pip install httpx"
    ) from exc

from endpoints import FILES
from . import config
from .errors import SessionExpiredError
from .models import LocalFile
from .refresh import RefreshCoordinator
from .session_store import Session
from .transfer import Transfer
from .utils import append_log_line, get_logger, redact_payload, redacted_headers, truncate_text


class DriveClient:
    """Authenticated HTTP client for the Netra Drive API.

    A 401 on an authenticated request is answered by one credential refresh
    (shared with any other request hitting the same expiry) and one replay.
    If the replay is rejected again, the response goes back to the caller
    untouched. If the refresh itself fails, the session is cleared and
    ``SessionExpiredError`` is raised.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        http_log_path: Optional[str] = None,
    ):
        self.base_url = (base_url or config.api_base_url()).rstrip('/')
        self.session = session or Session()
        self.timeout = timeout if timeout is not None else config.request_timeout()
        self.logger = get_logger('netra')
        self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=transport)
        self.http_log_path = http_log_path if http_log_path is not None else config.http_log_path()
        self.refresher = RefreshCoordinator(self.session, self._client)

    def _auth_headers(self) -> Dict[str, str]:
        access = self.session.access
        if access:
            return {"Authorization": f"Bearer {access}"}
        return {}

    def _send(self, method: str, path: str, authenticated: bool, **kwargs: Any) -> httpx.Response:
        headers = httpx.Headers(kwargs.pop('headers', None) or {})
        if "accept" not in headers:
            headers["Accept"] = "application/json"
        if authenticated:
            headers.update(self._auth_headers())
        redacted = redacted_headers(dict(headers))
        payload = None
        if "json" in kwargs:
            payload = redact_payload(kwargs.get("json"))
        elif "data" in kwargs:
            payload = redact_payload(kwargs.get("data"))
        self.logger.debug('HTTP %s %s headers=%s', method, path, redacted)
        if payload is not None:
            append_log_line(self.http_log_path, f"{method} {path} headers={redacted} payload={payload}")
        else:
            append_log_line(self.http_log_path, f"{method} {path} headers={redacted}")
        resp = self._client.request(method, path, headers=headers, **kwargs)
        self._log_response(method, path, resp)
        return resp

    def _log_response(self, method: str, path: str, resp: httpx.Response) -> None:
        if not self.http_log_path:
            return
        content_type = resp.headers.get("content-type", "")
        if "json" in content_type:
            try:
                body: Any = redact_payload(resp.json())
            except ValueError:
                body = truncate_text(resp.text or "")
        elif content_type.startswith("text/"):
            body = truncate_text(resp.text or "")
        else:
            body = f"<{len(resp.content)} bytes>"
        append_log_line(
            self.http_log_path,
            f"{method} {path} status={resp.status_code} response={json.dumps(body, ensure_ascii=True)}",
        )

    def request(
        self,
        method: str,
        path: str,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        used_access = self.session.access if authenticated else None
        resp = self._send(method, path, authenticated, **kwargs)
        if not authenticated or resp.status_code != 401:
            return resp
        if not self.session.refresh:
            return resp

        self.logger.debug("401 on %s %s, refreshing credentials", method, path)
        if not self.refresher.refresh(stale_access=used_access):
            self.session.clear()
            raise SessionExpiredError()
        # A second 401 here goes back to the caller as-is.
        return self._send(method, path, authenticated, **kwargs)

    def upload(self, file: LocalFile, folder_id: Optional[str] = None) -> Transfer:
        """Prepare (but do not start) the upload of ``file`` into ``folder_id``.

        The bearer header is read when the transfer starts, not now.
        """
        route = FILES["upload"]
        params = {"folder_id": folder_id} if folder_id else None
        append_log_line(self.http_log_path, f"{route['method']} {route['path']} upload={file.name} size={file.size}")
        return Transfer(
            self._client,
            route["path"],
            file,
            params=params,
            headers=self._auth_headers,
            method=route["method"],
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "DriveClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
