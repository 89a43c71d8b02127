from typing import Optional


class NetraError(Exception):
    """Base class for errors raised by the Netra Drive client."""


class NetworkError(NetraError):
    """Transport-level failure while talking to the API."""


class AuthError(NetraError):
    """The API rejected the session credentials."""


class SessionExpiredError(AuthError):
    """Refreshing the credentials failed; the user has to log in again."""

    def __init__(self, message: str = "Session expired, please log in again") -> None:
        super().__init__(message)


class ValidationError(NetraError):
    """Input rejected client-side before any network call."""

    def __init__(self, message: str, name: Optional[str] = None) -> None:
        super().__init__(message)
        self.name = name


class ServerError(NetraError):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class CancellationError(NetraError):
    """A transfer was aborted by the user. Never reported as a failure."""
