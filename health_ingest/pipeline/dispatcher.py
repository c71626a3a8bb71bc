"""Per-device ordered dispatch of ledger work off the paho thread.

Each worker thread owns its own bounded FIFO queue and a device id is
always routed to the same worker (``crc32(device_id) % num_workers``).
This gives:
- at most one in-flight pipeline per device id
- FIFO order per device, in bus arrival order
- parallelism across devices

The paho callback only enqueues; a full queue drops the task.
"""

from __future__ import annotations

import logging
import queue
import threading
import zlib
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000
DEFAULT_NUM_WORKERS = 4

Task = Callable[[], object]


class DeviceOrderedDispatcher:
    """Partitioned queue + worker threads keyed by device id.

    With ``num_workers=0`` tasks run inline on the submitting thread.
    """

    def __init__(
        self,
        num_workers: int = DEFAULT_NUM_WORKERS,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self._num_workers = max(0, num_workers)
        self._queues: list[queue.Queue] = [
            queue.Queue(maxsize=max_queue_size) for _ in range(self._num_workers)
        ]
        self._stop_event = threading.Event()
        self._workers: list[threading.Thread] = []

        self._enqueued = 0
        self._dropped = 0
        self._processed = 0
        self._errors = 0
        self._lock = threading.Lock()

    def partition_for(self, key: str) -> int:
        if self._num_workers == 0:
            return 0
        return zlib.crc32(key.encode("utf-8")) % self._num_workers

    def start(self) -> None:
        self._stop_event.clear()
        for i in range(self._num_workers):
            t = threading.Thread(
                target=self._worker_loop,
                args=(i,),
                daemon=True,
                name=f"intake-worker-{i}",
            )
            t.start()
            self._workers.append(t)
        logger.info(
            "[DISPATCH] Started workers=%d queue_max=%d",
            self._num_workers,
            self._queues[0].maxsize if self._queues else 0,
        )

    def stop(self, drain: bool = True) -> None:
        """Stops workers. If drain=True, queued tasks run first."""
        if drain:
            for q in self._queues:
                q.join()
        self._stop_event.set()
        for t in self._workers:
            t.join(timeout=5.0)
        self._workers.clear()
        logger.info("[DISPATCH] Stopped. %s", self.metrics)

    def submit(self, key: str, task: Task) -> bool:
        """Queues ``task`` behind earlier tasks for ``key``.

        Returns False if the partition queue is full (task dropped).
        """
        if self._num_workers == 0:
            with self._lock:
                self._enqueued += 1
            self._run(task, worker_id=-1)
            return True

        partition = self.partition_for(key)
        try:
            self._queues[partition].put_nowait(task)
        except queue.Full:
            with self._lock:
                self._dropped += 1
            logger.warning("[DISPATCH] Queue %d full, dropped device=%s", partition, key)
            return False

        with self._lock:
            self._enqueued += 1
        return True

    def _worker_loop(self, worker_id: int) -> None:
        q = self._queues[worker_id]
        while not self._stop_event.is_set():
            try:
                task = q.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self._run(task, worker_id)
            finally:
                q.task_done()

    def _run(self, task: Task, worker_id: int) -> None:
        try:
            task()
            with self._lock:
                self._processed += 1
        except Exception as e:
            # Workers outlive failing tasks.
            with self._lock:
                self._errors += 1
            logger.exception("[DISPATCH] Worker %d error: %s", worker_id, e)

    @property
    def metrics(self) -> dict:
        with self._lock:
            return {
                "workers": self._num_workers,
                "queue_depth": sum(q.qsize() for q in self._queues),
                "enqueued": self._enqueued,
                "dropped": self._dropped,
                "processed": self._processed,
                "errors": self._errors,
            }
