import os
import re
from typing import Optional

from endpoints import BASE_URL

DEFAULT_SESSION_PATH = ".netra/session.json"
DEFAULT_HTTP_LOG = "netra_http.log"

MAX_UPLOAD_BYTES = 1024 ** 3
EVICTION_DELAY = 5.0
TASK_POLL_INTERVAL = 2.0
REQUEST_TIMEOUT = 30.0


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if not value:
        return default
    return value not in ("0", "false", "FALSE")


def api_base_url() -> str:
    return os.getenv("NETRA_DRIVE_API_BASE_URL", BASE_URL).rstrip("/")


def api_root(base_url: Optional[str] = None) -> str:
    """Origin the share links live under: the base URL without ``/api/v1``."""
    base = base_url if base_url is not None else api_base_url()
    return re.sub(r"/api/v1/?$", "", base)


def debug_enabled() -> bool:
    return _env_bool("NETRA_DEBUG", False)


def http_log_path() -> str:
    # An explicitly empty value turns the trace file off.
    value = os.getenv("NETRA_HTTP_LOG")
    if value is None:
        return os.path.join(os.getcwd(), DEFAULT_HTTP_LOG)
    return value


def request_timeout() -> float:
    return _env_float("NETRA_TIMEOUT", REQUEST_TIMEOUT)


def max_upload_bytes() -> int:
    return _env_int("NETRA_MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES)


def eviction_delay() -> float:
    return _env_float("NETRA_EVICTION_DELAY", EVICTION_DELAY)


def task_poll_interval() -> float:
    return _env_float("NETRA_TASK_POLL_INTERVAL", TASK_POLL_INTERVAL)


def session_path() -> str:
    return os.getenv("NETRA_SESSION_PATH", DEFAULT_SESSION_PATH)
