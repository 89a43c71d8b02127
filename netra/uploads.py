"""Sequential upload queue.

Files are validated on enqueue, then uploaded one at a time in enqueue
order. Each item moves through::

    queued -> uploading -> complete | error
    queued -> cancelled
    uploading -> cancelled

and never leaves a terminal state. Terminal items are dropped from the
queue a fixed delay after they finish.
"""

import itertools
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import config
from .errors import ValidationError
from .models import LocalFile
from .transfer import (
    Transfer,
    TransferAborted,
    TransferCompleted,
    TransferFailed,
    TransferProgress,
)
from .utils import get_logger


class UploadStatus(str, Enum):
    QUEUED = "queued"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (UploadStatus.COMPLETE, UploadStatus.ERROR, UploadStatus.CANCELLED)


@dataclass(eq=False)
class UploadItem:
    id: int
    file: LocalFile
    folder_id: Optional[str] = None
    progress: float = 0.0
    status: UploadStatus = UploadStatus.QUEUED
    error: Optional[str] = None
    transfer: Optional[Transfer] = field(default=None, repr=False)


@dataclass
class EnqueueResult:
    accepted: List[UploadItem] = field(default_factory=list)
    rejected: List[ValidationError] = field(default_factory=list)


class UploadQueue:
    def __init__(
        self,
        client: Any,
        max_bytes: Optional[int] = None,
        eviction_delay: Optional[float] = None,
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ) -> None:
        self._client = client
        self.max_bytes = max_bytes if max_bytes is not None else config.max_upload_bytes()
        self.eviction_delay = eviction_delay if eviction_delay is not None else config.eviction_delay()
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._items: List[UploadItem] = []
        self._active: Optional[Transfer] = None
        self._ids = itertools.count(1)
        self._timers: Dict[int, Any] = {}
        # Mutations whose listeners have not run yet; join() waits for them.
        self._dispatching = 0
        self._change_listeners: List[Callable[[List[UploadItem]], None]] = []
        self._uploaded_listeners: List[Callable[[UploadItem], None]] = []
        self.logger = get_logger("netra.uploads")

    # --- listeners ---

    def on_change(self, callback: Callable[[List[UploadItem]], None]) -> None:
        """Call ``callback`` with a snapshot after every queue mutation."""
        self._change_listeners.append(callback)

    def on_uploads_changed(self, callback: Callable[[UploadItem], None]) -> None:
        """Call ``callback`` each time an upload completes, so listings and
        storage usage can be refreshed."""
        self._uploaded_listeners.append(callback)

    # --- public operations ---

    def items(self) -> List[UploadItem]:
        with self._lock:
            return [replace(item) for item in self._items]

    def get(self, item_id: int) -> Optional[UploadItem]:
        with self._lock:
            item = self._find(item_id)
            return replace(item) if item is not None else None

    def enqueue(self, files: Iterable[LocalFile], folder_id: Optional[str] = None) -> EnqueueResult:
        result = EnqueueResult()
        valid: List[LocalFile] = []
        for file in files:
            if file.size > self.max_bytes:
                err = ValidationError(
                    f'"{file.name}" is too large (max {self.max_bytes} bytes).', name=file.name
                )
                self.logger.warning("Upload rejected: %s", err)
                result.rejected.append(err)
                continue
            valid.append(file)

        if valid:
            with self._lock:
                for file in valid:
                    item = UploadItem(id=next(self._ids), file=file, folder_id=folder_id)
                    self._items.append(item)
                    result.accepted.append(item)
                self._dispatching += 1
            self.logger.info("%d file(s) queued for upload.", len(result.accepted))
            self._changed()
        result.accepted = [replace(item) for item in result.accepted]
        return result

    def cancel(self, item_id: int) -> bool:
        """Cancel a queued or running upload. Returns False if there was
        nothing left to cancel."""
        with self._lock:
            item = self._find(item_id)
            if item is None or item.status.terminal:
                return False
            if item.status is UploadStatus.QUEUED:
                item.status = UploadStatus.CANCELLED
                self._schedule_eviction(item)
                self._dispatching += 1
                transfer = None
            else:
                # Stays uploading until the transfer reports the abort.
                transfer = item.transfer
        if transfer is not None:
            transfer.abort()
        else:
            self.logger.info("Upload of %s cancelled.", item.file.name)
            self._changed()
        return True

    def clear(self) -> None:
        """Drop every item now, aborting the running upload if any."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            active = self._active
            self._items = []
            self._dispatching += 1
        if active is not None:
            active.abort()
        self._changed()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is queued or uploading and every listener has
        seen the final state. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(self._is_idle, timeout)

    # --- processing ---

    def _find(self, item_id: int) -> Optional[UploadItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _is_idle(self) -> bool:
        if self._active is not None or self._dispatching:
            return False
        return not any(
            item.status in (UploadStatus.QUEUED, UploadStatus.UPLOADING) for item in self._items
        )

    def _changed(self) -> None:
        # Callers bump _dispatching in the same locked section as their mutation.
        try:
            self._process()
            self._notify(self.items())
        finally:
            with self._lock:
                self._dispatching -= 1
                self._idle.notify_all()

    def _notify(self, snapshot: List[UploadItem]) -> None:
        for callback in list(self._change_listeners):
            try:
                callback(snapshot)
            except Exception:
                self.logger.exception("Upload change listener failed")

    def _process(self) -> None:
        with self._lock:
            if self._active is not None:
                return
            item = next((i for i in self._items if i.status is UploadStatus.QUEUED), None)
            if item is None:
                return
            item.status = UploadStatus.UPLOADING
            transfer = self._client.upload(item.file, item.folder_id)
            item.transfer = transfer
            self._active = transfer
        worker = threading.Thread(
            target=self._run, args=(item, transfer), name=f"netra-queue-{item.id}", daemon=True
        )
        worker.start()

    def _run(self, item: UploadItem, transfer: Transfer) -> None:
        transfer.start()
        for event in transfer.events():
            if isinstance(event, TransferProgress):
                with self._lock:
                    item.progress = event.percent
                self._notify(self.items())
            elif isinstance(event, TransferCompleted):
                self._finish(item, UploadStatus.COMPLETE)
            elif isinstance(event, TransferFailed):
                self._finish(item, UploadStatus.ERROR, event.message)
            elif isinstance(event, TransferAborted):
                self._finish(item, UploadStatus.CANCELLED)

    def _finish(self, item: UploadItem, status: UploadStatus, error: Optional[str] = None) -> None:
        with self._lock:
            item.status = status
            item.error = error
            if status is UploadStatus.COMPLETE:
                item.progress = 100.0
            item.transfer = None
            self._active = None
            if any(i is item for i in self._items):
                self._schedule_eviction(item)
            self._dispatching += 1

        try:
            if status is UploadStatus.COMPLETE:
                self.logger.info("Uploaded %s", item.file.name)
                for callback in list(self._uploaded_listeners):
                    try:
                        callback(replace(item))
                    except Exception:
                        self.logger.exception("Uploads-changed listener failed")
            elif status is UploadStatus.ERROR:
                self.logger.error("Failed to upload %s: %s", item.file.name, error)
            else:
                self.logger.info("Upload of %s cancelled.", item.file.name)
        finally:
            self._changed()

    # --- eviction ---

    def _schedule_eviction(self, item: UploadItem) -> None:
        timer = self._timer_factory(self.eviction_delay, lambda: self._evict(item.id))
        if hasattr(timer, "daemon"):
            timer.daemon = True
        self._timers[item.id] = timer
        timer.start()

    def _evict(self, item_id: int) -> None:
        with self._lock:
            self._timers.pop(item_id, None)
            item = self._find(item_id)
            if item is None or not item.status.terminal:
                return
            self._items.remove(item)
            self._dispatching += 1
        self._changed()
