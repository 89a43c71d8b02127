"""Single-file multipart upload with a progress channel and hard abort.

A ``Transfer`` runs its request on its own thread and reports everything it
does as events on a queue: any number of ``TransferProgress`` followed by
exactly one terminal event (``TransferCompleted``, ``TransferFailed`` or
``TransferAborted``). Consumers iterate ``events()`` instead of sharing
counters with the transport thread.
"""

import os
import queue
import threading
from dataclasses import dataclass
from typing import IO, Any, Callable, Dict, Iterator, Optional

import httpx

from .errors import CancellationError, NetworkError, ServerError
from .models import LocalFile
from .utils import get_logger, response_detail


@dataclass(frozen=True)
class TransferProgress:
    sent: int
    total: int

    terminal = False

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return max(0.0, min(100.0, (self.sent / self.total) * 100.0))


@dataclass(frozen=True)
class TransferCompleted:
    response: httpx.Response

    terminal = True


@dataclass(frozen=True)
class TransferFailed:
    error: Exception

    terminal = True

    @property
    def message(self) -> str:
        if isinstance(self.error, ServerError):
            return self.error.detail
        return str(self.error) or "Upload failed"


@dataclass(frozen=True)
class TransferAborted:
    terminal = True


class ProgressReader:
    """File wrapper handed to httpx: counts bytes read and honours abort.

    The abort flag is checked before every chunk, so an abort takes effect
    at the next chunk boundary of the request body.
    """

    def __init__(
        self,
        raw: IO[bytes],
        total: int,
        abort: threading.Event,
        on_progress: Callable[[int, int], None],
    ) -> None:
        self._raw = raw
        self._total = total
        self._abort = abort
        self._on_progress = on_progress
        self._position = 0

    def read(self, size: int = -1) -> bytes:
        if self._abort.is_set():
            raise CancellationError("Upload cancelled")
        chunk = self._raw.read(size)
        if chunk:
            self._position += len(chunk)
            self._on_progress(min(self._position, self._total), self._total)
        return chunk

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        self._position = self._raw.seek(offset, whence)
        return self._position

    def tell(self) -> int:
        return self._raw.tell()


class Transfer:
    def __init__(
        self,
        http: httpx.Client,
        path: str,
        file: LocalFile,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Callable[[], Dict[str, str]]] = None,
        method: str = "POST",
    ) -> None:
        self._http = http
        self._path = path
        self._file = file
        self._params = params or {}
        self._headers = headers or (lambda: {})
        self._method = method
        self._channel: "queue.Queue[Any]" = queue.Queue()
        self._abort = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.logger = get_logger("netra.transfer")

    @property
    def file(self) -> LocalFile:
        return self._file

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    def abort(self) -> None:
        self.logger.debug("Abort requested for %s", self._file.name)
        self._abort.set()

    def start(self) -> "Transfer":
        if self._thread is not None:
            raise RuntimeError("Transfer already started")
        self._thread = threading.Thread(
            target=self._run, name=f"netra-upload-{self._file.name}", daemon=True
        )
        self._thread.start()
        return self

    def events(self) -> Iterator[Any]:
        while True:
            event = self._channel.get()
            yield event
            if event.terminal:
                return

    def wait(self) -> Any:
        """Drain the channel and return the terminal event."""
        event = None
        for event in self.events():
            pass
        return event

    def _emit_progress(self, sent: int, total: int) -> None:
        self._channel.put(TransferProgress(sent, total))

    def _run(self) -> None:
        if self._abort.is_set():
            self._channel.put(TransferAborted())
            return
        self.logger.debug("Upload start %s (%d bytes)", self._file.name, self._file.size)
        try:
            with self._file.open() as raw:
                reader = ProgressReader(raw, self._file.size, self._abort, self._emit_progress)
                resp = self._http.request(
                    self._method,
                    self._path,
                    params=self._params,
                    headers=self._headers(),
                    files={"file": (self._file.name, reader)},
                )
        except Exception as exc:
            if self._abort.is_set():
                self.logger.info("Upload cancelled: %s", self._file.name)
                self._channel.put(TransferAborted())
            elif isinstance(exc, httpx.TransportError):
                self.logger.error("Upload transport error for %s: %s", self._file.name, exc)
                self._channel.put(TransferFailed(NetworkError(str(exc) or "Upload failed.")))
            else:
                self.logger.error("Upload failed for %s: %s", self._file.name, exc)
                self._channel.put(TransferFailed(exc))
            return

        if resp.is_success:
            self.logger.debug("Upload done %s status=%s", self._file.name, resp.status_code)
            self._channel.put(TransferCompleted(resp))
        elif self._abort.is_set():
            # Body fully sent before the abort; the rejection is not a failure.
            self.logger.info("Upload cancelled: %s (server replied %s)", self._file.name, resp.status_code)
            self._channel.put(TransferAborted())
        else:
            detail = response_detail(resp, "Upload failed")
            self.logger.error("Upload rejected for %s: %s", self._file.name, detail)
            self._channel.put(TransferFailed(ServerError(resp.status_code, detail)))
