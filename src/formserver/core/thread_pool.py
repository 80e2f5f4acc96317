"""
=============================================================================
THREAD POOL: ONE WORKER THREAD PER CONNECTION
=============================================================================

The default isolation unit. The accept loop drops each connection into a
bounded queue and goes straight back to accept(); worker threads pull
connections off the queue and run the whole request cycle.

    ┌──────────────┐     submit()      ┌─────────────────────┐
    │ Accept loop  │ ────────────────► │ Queue (bounded)     │
    └──────────────┘   never blocks    └──────────┬──────────┘
                                                  │ get()
                         ┌────────────────────────┼────────────────────────┐
                         ▼                        ▼                        ▼
                   ┌──────────┐             ┌──────────┐             ┌──────────┐
                   │ Worker-0 │             │ Worker-1 │     ...     │ Worker-N │
                   └──────────┘             └──────────┘             └──────────┘

FAILURE CONTAINMENT
───────────────────
A job that raises is logged and counted; the worker thread survives and
takes the next job. One bad request can't take down another.

BACKPRESSURE
────────────
submit() never waits. If the queue is full it returns False and the caller
answers 503. Workers start at min_workers and grow toward max_workers while
every worker is busy and jobs are waiting.

SHUTDOWN
────────
One poison pill (None) per worker. Jobs already queued run first.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Job:
    """A deferred call: func(*args)."""

    func: Callable[..., Any]
    args: tuple = ()
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """Pulls jobs off the shared queue until it receives a poison pill."""

    def __init__(self, jobs: "queue.Queue[Optional[Job]]", worker_id: int, log: logging.Logger):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.jobs = jobs
        self.worker_id = worker_id
        self.log = log
        self.state = WorkerState.IDLE
        self.jobs_completed = 0
        self.jobs_failed = 0

    def run(self):
        self.log.debug(f"Worker {self.worker_id} started")
        while True:
            job = self.jobs.get()
            try:
                if job is None:
                    break
                self._execute(job)
            finally:
                self.jobs.task_done()
        self.state = WorkerState.STOPPED
        self.log.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, job: Job):
        self.state = WorkerState.BUSY
        started = time.time()
        try:
            job.func(*job.args)
            self.jobs_completed += 1
            self.log.debug(
                f"Worker {self.worker_id} finished job in {time.time() - started:.3f}s "
                f"(queued {started - job.submitted_at:.3f}s)"
            )
        except Exception as e:
            self.jobs_failed += 1
            self.log.exception(f"Worker {self.worker_id} job failed: {e}")
        finally:
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Bounded pool of worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        if not pool.submit(handle, args=(conn,)):
            ...  # overloaded
        pool.shutdown(wait=True, timeout=30.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        logger: Optional[logging.Logger] = None,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.log = logger or logging.getLogger(__name__)

        self._jobs: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutting_down = False

    def start(self):
        if self._started:
            return
        self.log.info(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()
        self._started = True
        self._shutting_down = False

    def _add_worker(self):
        # Caller holds self._lock
        worker = Worker(self._jobs, len(self._workers), self.log)
        self._workers.append(worker)
        worker.start()

    def submit(self, func: Callable[..., Any], args: tuple = ()) -> bool:
        """
        Queue func(*args) without blocking.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool isn't running.
        """
        if not self._started or self._shutting_down:
            raise RuntimeError("Thread pool is not running")

        try:
            self._jobs.put_nowait(Job(func=func, args=args))
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            all_busy = all(w.state == WorkerState.BUSY for w in self._workers)
            if all_busy and self._jobs.qsize() > 0 and len(self._workers) < self.max_workers:
                self.log.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Args:
            wait: Let queued jobs finish before stopping.
            timeout: Upper bound on the wait, in seconds.
        """
        if not self._started:
            return
        self.log.info("Shutting down thread pool...")
        self._shutting_down = True

        deadline = time.time() + timeout if timeout else None
        if wait:
            while self._jobs.unfinished_tasks:
                if deadline and time.time() > deadline:
                    self.log.warning("Thread pool shutdown timed out, abandoning queued jobs")
                    break
                time.sleep(0.05)

        for _ in self._workers:
            try:
                self._jobs.put_nowait(None)
            except queue.Full:
                break
        for worker in self._workers:
            worker.join(timeout=2.0)

        self._workers.clear()
        self._started = False
        self.log.info("Thread pool shutdown complete")

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def stats(self) -> dict:
        return {
            "workers": len(self._workers),
            "busy": self.busy_workers,
            "queued": self._jobs.qsize(),
            "completed": sum(w.jobs_completed for w in self._workers),
            "failed": sum(w.jobs_failed for w in self._workers),
        }
