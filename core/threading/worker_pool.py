"""
POSEFIT Worker Thread Pool

ThreadPoolExecutor for frame analysis so that scoring never blocks
frame intake.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Callable, Any, Iterable, List, Optional
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import itertools
import threading

from core.config import settings

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class Task:
    """Represents a processing task."""
    task_id: str
    func: Callable
    args: tuple = ()
    kwargs: dict = None
    status: TaskStatus = TaskStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = None
    completed_at: datetime = None

    def __post_init__(self):
        if self.kwargs is None:
            self.kwargs = {}
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)


class WorkerPool:
    """
    Thread pool for frame analysis.

    Features:
    - Fixed-size thread pool
    - Task tracking and cancellation
    - Ordered fan-out helper for batch analysis
    """

    def __init__(
        self,
        max_workers: int = None,
        name: str = "worker_pool"
    ):
        self.max_workers = max_workers or settings.THREAD_POOL_SIZE
        self.name = name

        # Thread pool
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=f"{name}_"
        )

        # Task tracking
        self._tasks: dict[str, Task] = {}
        self._futures: dict[str, Future] = {}
        self._lock = threading.Lock()
        self._counter = itertools.count(1)

        # Stats
        self._completed_count = 0
        self._failed_count = 0

        logger.info(
            f"🧵 WorkerPool '{name}' initialized (workers: {self.max_workers})"
        )

    def submit(
        self,
        func: Callable,
        *args,
        task_id: str = None,
        **kwargs
    ) -> str:
        """
        Submit a task to the thread pool.

        Returns:
            task_id for tracking
        """
        task_id, _ = self._submit(func, args, kwargs, task_id)
        return task_id

    def submit_future(self, func: Callable, *args, **kwargs) -> Future:
        """Submit a task and return its future directly."""
        _, future = self._submit(func, args, kwargs, None)
        return future

    def _submit(self, func: Callable, args: tuple, kwargs: dict, task_id: Optional[str]):
        task_id = task_id or f"task_{next(self._counter)}"

        task = Task(
            task_id=task_id,
            func=func,
            args=args,
            kwargs=kwargs
        )

        with self._lock:
            self._tasks[task_id] = task

        future = self._executor.submit(self._run_task, task)

        with self._lock:
            self._futures[task_id] = future

        # Finished tasks are not kept around; live sessions submit one task
        # per analysed frame.
        future.add_done_callback(lambda _: self._forget(task_id))

        logger.debug(f"Task {task_id} submitted")
        return task_id, future

    def _forget(self, task_id: str):
        with self._lock:
            self._tasks.pop(task_id, None)
            self._futures.pop(task_id, None)

    def get_future(self, task_id: str) -> Optional[Future]:
        """Get the future backing a pending or running task."""
        with self._lock:
            return self._futures.get(task_id)

    def map_ordered(self, func: Callable, items: Iterable[Any]) -> List[Future]:
        """
        Submit func(item) for every item and return the futures in input order.

        Callers decide how to handle per-item failures via future.exception().
        """
        return [self.submit_future(func, item) for item in items]

    def _run_task(self, task: Task) -> Any:
        """Execute a task in the thread pool."""
        task.status = TaskStatus.RUNNING

        try:
            result = task.func(*task.args, **task.kwargs)

            task.status = TaskStatus.COMPLETED
            task.result = result
            task.completed_at = datetime.now(timezone.utc)

            with self._lock:
                self._completed_count += 1

            logger.debug(f"Task {task.task_id} completed")
            return result

        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e)
            task.completed_at = datetime.now(timezone.utc)

            with self._lock:
                self._failed_count += 1

            logger.error(f"Task {task.task_id} failed: {e}")
            raise

    def get_task_status(self, task_id: str) -> Optional[TaskStatus]:
        """Get the status of a pending or running task."""
        task = self._tasks.get(task_id)
        return task.status if task else None

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a pending task."""
        future = self.get_future(task_id)

        if future and not future.done():
            task = self._tasks.get(task_id)
            cancelled = future.cancel()
            if cancelled and task:
                task.status = TaskStatus.CANCELLED
            return cancelled

        return False

    # ========================================
    # Lifecycle
    # ========================================

    def shutdown(self, wait: bool = True):
        """Shutdown the thread pool."""
        logger.info(f"Shutting down WorkerPool '{self.name}'...")
        self._executor.shutdown(wait=wait)
        logger.info(f"WorkerPool '{self.name}' shutdown complete")

    def get_stats(self) -> dict:
        """Get pool statistics."""
        with self._lock:
            tasks = list(self._tasks.values())
        return {
            "name": self.name,
            "max_workers": self.max_workers,
            "pending_tasks": len([t for t in tasks if t.status == TaskStatus.PENDING]),
            "running_tasks": len([t for t in tasks if t.status == TaskStatus.RUNNING]),
            "completed_tasks": self._completed_count,
            "failed_tasks": self._failed_count,
        }


# ============================================
# Global Worker Pool
# ============================================

_analysis_pool: Optional[WorkerPool] = None
_pool_lock = threading.Lock()


def get_analysis_pool() -> WorkerPool:
    """Get or create the shared frame-analysis worker pool."""
    global _analysis_pool
    with _pool_lock:
        if _analysis_pool is None:
            _analysis_pool = WorkerPool(name="frame_analysis")
        return _analysis_pool
