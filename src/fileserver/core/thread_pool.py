"""
=============================================================================
WORKER THREAD POOL
=============================================================================

Every accepted connection is handled on its own worker thread so a slow
client never holds up the accept loop or other clients.

    accept loop                       workers
    ───────────                       ───────
    accept() ──► pool.submit(conn) ─► [queue] ─► Worker 1: handle(conn A)
    accept() ──► pool.submit(conn) ─►         ─► Worker 2: handle(conn B)
    accept() ──► ...                          ─► Worker 3: (idle)

=============================================================================
WHY A BOUNDED POOL?
=============================================================================

The simplest design spawns one thread per connection with no limit:

    for conn in accept_connections():
        Thread(target=handle, args=(conn,)).start()

That works, but a burst of 10,000 connections means 10,000 threads. The
pool caps both the number of threads (max_workers) and the number of
connections waiting for one (queue_size). submit() never blocks: when the
queue is full it returns False and the caller drops the connection.

=============================================================================
WORKER LIFECYCLE
=============================================================================

    def run(self):
        while not shutdown:
            task = queue.get()      ← BLOCKS until task available
            if task is None:        ← "Poison pill" signals shutdown
                break
            execute(task)           ← Exceptions are logged, never fatal
            queue.task_done()

Workers are created on demand: the pool starts with min_workers and adds
one whenever more connections are outstanding (queued or running) than
there are workers, up to max_workers. Every connection therefore gets its
own thread until the cap is reached.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Worker thread states, for monitoring and debugging."""
    IDLE = "idle"      # Waiting for task
    BUSY = "busy"      # Executing task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call: "call func(*args, **kwargs) later".

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        submitted_at: Time the task was queued.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the shared queue.

    A task that raises is logged and counted; the worker keeps running.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            task_queue: Queue to pull tasks from.
            worker_id: Unique identifier for this worker (for logging).
            idle_timeout: Seconds to wait for a task before re-checking
                          the shutdown flag.
        """
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break  # Poison pill
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        """
        Execute a single task.

        Wrapped with state tracking, timing and exception handling so one
        failing connection can never take a worker down.
        """
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s "
                f"(queued {start_time - task.submitted_at:.3f}s)"
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after {time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop."""
        self._shutdown.set()


class ThreadPool:
    """
    Bounded thread pool for per-connection work.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool Usage                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   pool = ThreadPool(min_workers=4, max_workers=32)                  │
    │   pool.start()                                                       │
    │                                                                      │
    │   if not pool.submit(handle_connection, args=(conn,)):              │
    │       conn.close()          # Overloaded: queue is full             │
    │                                                                      │
    │   pool.shutdown(wait=True)                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 32,
        queue_size: int = 256,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            min_workers: Worker threads created at startup.
            max_workers: Upper bound on worker threads.
            queue_size: Maximum number of tasks waiting for a worker.
            idle_timeout: Seconds an idle worker waits before re-checking
                          for shutdown.
        """
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # Protects _workers list

        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        """Start the pool with min_workers threads."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")

        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()

        self._started = True

    def _add_worker(self) -> Worker:
        """Create and start a worker. Caller must hold _lock."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
    ) -> bool:
        """
        Queue a task without blocking.

        Args:
            func: The function to execute.
            args: Positional arguments for the function.
            kwargs: Keyword arguments for the function.

        Returns:
            True if the task was queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")

        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        try:
            self._task_queue.put_nowait(Task(func=func, args=args, kwargs=kwargs or {}))
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """
        Add a worker if more tasks are outstanding than there are workers.

        ┌──────────────────────────────────────────────────────┐
        │  unfinished tasks > workers?  AND  workers < max?    │
        │      └──────────────► spawn one more worker          │
        └──────────────────────────────────────────────────────┘

        unfinished_tasks counts a task from put() until its task_done(),
        so it covers both queued and running tasks with no gap between a
        worker dequeuing a task and marking itself busy.
        """
        with self._lock:
            if (
                self._task_queue.unfinished_tasks > len(self._workers)
                and len(self._workers) < self.max_workers
            ):
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        1. Reject new tasks
        2. If wait=True: let queued tasks drain (bounded by timeout)
        3. Send one poison pill per worker and join them

        Args:
            wait: Whether to wait for pending tasks to complete.
            timeout: Maximum seconds to wait for the queue to drain.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = None if timeout is None else time.time() + timeout
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.time() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        for worker in self._workers:
            worker.shutdown()
            try:
                self._task_queue.put_nowait(None)
            except queue.Full:
                pass  # Worker sees the shutdown flag within idle_timeout

        for worker in self._workers:
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
        self._started = False

        logger.info("Thread pool shutdown complete")

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def stats(self) -> dict:
        """Worker and task counts, for logging and tests."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
