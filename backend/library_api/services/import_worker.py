"""
Worker pool for background bulk imports.

Tasks go through a bounded queue to a fixed set of threads, so a long import
never ties up a request thread and a burst of uploads cannot queue without
limit.
"""

import queue
import threading
from typing import Callable

from library_api.core.exceptions import ImportQueueFullError
from library_api.core.logging import get_logger

logger = get_logger(__name__)

Task = Callable[[], None]

# Sentinel telling a worker thread to exit
_STOP = None


class ImportWorkerPool:
    def __init__(
        self,
        worker_count: int = 2,
        queue_capacity: int = 100,
        name_prefix: str = "bulk-import",
    ):
        self.worker_count = worker_count
        self.queue_capacity = queue_capacity
        self.name_prefix = name_prefix
        self._queue: queue.Queue[Task | None] = queue.Queue(maxsize=queue_capacity)
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._threads = [
                threading.Thread(
                    target=self._run,
                    name=f"{self.name_prefix}-{i + 1}",
                    daemon=True,
                )
                for i in range(self.worker_count)
            ]
            for thread in self._threads:
                thread.start()
        logger.info(f"Started {self.worker_count} import workers (queue capacity {self.queue_capacity})")

    def submit(self, task: Task) -> None:
        """
        Queue a task without blocking.

        Raises:
            ImportQueueFullError: if the queue is at capacity.
        """
        if not self.is_running:
            raise RuntimeError("Import worker pool is not running")
        try:
            self._queue.put_nowait(task)
        except queue.Full:
            logger.warning("Import queue is full, rejecting task")
            raise ImportQueueFullError(self.queue_capacity) from None

    def join(self) -> None:
        """Block until every queued task has finished."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        """Stop the workers once the tasks already queued have run."""
        with self._lock:
            threads, self._threads = self._threads, []
            for _ in threads:
                self._queue.put(_STOP)
        if wait:
            for thread in threads:
                thread.join()
        logger.info("Import workers stopped")

    def _run(self) -> None:
        while True:
            task = self._queue.get()
            try:
                if task is _STOP:
                    return
                task()
            except Exception:
                logger.exception("Import task raised an unhandled exception")
            finally:
                self._queue.task_done()
