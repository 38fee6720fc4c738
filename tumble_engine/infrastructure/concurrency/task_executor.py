# tumble_engine/infrastructure/concurrency/task_executor.py
import logging
from enum import Enum, auto
from typing import List, Callable, TypeVar, Any, Optional

from .process_pool import ProcessPool
from .thread_pool import ThreadPool

T = TypeVar("T")

ProgressCallback = Callable[[int, int], Any]


class ExecutionMode(Enum):
    SEQUENTIAL = auto()
    MULTITHREAD = auto()
    MULTIPROCESS = auto()

    @classmethod
    def from_name(cls, name: str) -> "ExecutionMode":
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown execution mode: {name}") from None


class TaskExecutor:
    """
    Runs independent tasks sequentially, on threads or on processes.

    Results always come back in submission order. In MULTIPROCESS mode every
    task must be picklable.
    """
    def __init__(self, mode: ExecutionMode, max_workers: Optional[int] = None):
        self.mode = mode
        self.max_workers = max_workers
        self.logger = logging.getLogger("infrastructure.task_executor")

        if self.mode == ExecutionMode.MULTITHREAD:
            self.pool = ThreadPool(max_workers)
        elif self.mode == ExecutionMode.MULTIPROCESS:
            self.pool = ProcessPool(max_workers)
        else:
            self.pool = None

    def execute(self, tasks: List[Callable[[], T]]) -> List[T]:
        return self.execute_with_progress(tasks)

    def execute_with_progress(self, tasks: List[Callable[[], T]],
                              progress_callback: Optional[ProgressCallback] = None) -> List[T]:
        """
        Run every task and wait for all of them.

        Args:
            tasks: Zero-argument callables
            progress_callback: Called with (completed, total) after each task

        Returns:
            Task results in the order the tasks were given
        """
        task_count = len(tasks)
        self.logger.info(f"Executing {task_count} tasks in {self.mode.name} mode")

        if self.mode == ExecutionMode.SEQUENTIAL:
            results = []
            for i, task in enumerate(tasks):
                results.append(task())
                if progress_callback:
                    progress_callback(i + 1, task_count)
            return results

        return self.pool.execute_tasks(tasks, progress_callback)
