# tumble_engine/infrastructure/concurrency/thread_pool.py
import concurrent.futures
import logging
from typing import Any, Callable, List, Optional, TypeVar

T = TypeVar("T")


class ThreadPool:
    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers
        self.logger = logging.getLogger("infrastructure.thread_pool")

    def execute_tasks(self, tasks: List[Callable[[], T]],
                      progress_callback: Optional[Callable[[int, int], Any]] = None) -> List[T]:
        self.logger.info(f"Executing {len(tasks)} tasks with {self.max_workers} workers")
        results = [None] * len(tasks)
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(task): i for i, task in enumerate(tasks)}
            for completed, future in enumerate(concurrent.futures.as_completed(futures), start=1):
                results[futures[future]] = future.result()
                if progress_callback:
                    progress_callback(completed, len(tasks))
        return results
