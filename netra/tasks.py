import threading
from typing import Callable, List, Optional

from . import api, config
from .client import DriveClient
from .errors import SessionExpiredError
from .models import Task
from .utils import get_logger


class TaskPoller:
    """Re-fetch the transfer task list while someone is watching it.

    The next fetch is armed only after the previous one returned, so slow
    responses never stack up. Fetch errors go to ``on_error`` and polling
    carries on, except for an expired session, which stops it.
    """

    def __init__(
        self,
        client: DriveClient,
        user_id: str,
        on_tasks: Callable[[List[Task]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        interval: Optional[float] = None,
    ) -> None:
        self._client = client
        self._user_id = user_id
        self._on_tasks = on_tasks
        self._on_error = on_error or (lambda _exc: None)
        self.interval = interval if interval is not None else config.task_poll_interval()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.logger = get_logger("netra.tasks")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="netra-task-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def poll_once(self) -> Optional[List[Task]]:
        try:
            tasks = api.get_tasks(self._client, self._user_id)
        except Exception as exc:
            self.logger.error("Could not update tasks: %s", exc)
            if isinstance(exc, SessionExpiredError):
                self._stop.set()
            self._on_error(exc)
            return None
        self._on_tasks(tasks)
        return tasks

    def cancel_task(self, task_id: str) -> None:
        api.cancel_task(self._client, task_id)
        self.logger.info("Task cancellation requested: %s", task_id)
        if self.running:
            self.poll_once()

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.poll_once()
            if self._stop.wait(self.interval):
                break
