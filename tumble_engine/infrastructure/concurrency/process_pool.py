# tumble_engine/infrastructure/concurrency/process_pool.py
import logging
import multiprocessing
import concurrent.futures
from typing import Any, Callable, List, Optional, TypeVar

T = TypeVar('T')  # Return type of tasks


class ProcessPool:
    """
    Manages a pool of worker processes for CPU-bound tasks.
    """
    def __init__(self, max_workers: Optional[int] = None):
        """
        Initialize the process pool.

        Args:
            max_workers: Maximum number of worker processes (defaults to CPU count - 1)
        """
        self.logger = logging.getLogger("infrastructure.process_pool")
        cpu_count = multiprocessing.cpu_count()
        self.max_workers = max_workers or max(1, cpu_count - 1)
        self.logger.info(f"Initialized process pool with {self.max_workers} workers")

    def execute_tasks(self, tasks: List[Callable[[], T]],
                      progress_callback: Optional[Callable[[int, int], Any]] = None) -> List[T]:
        """
        Execute CPU-bound tasks concurrently across multiple processes.

        Args:
            tasks: List of picklable callable tasks
            progress_callback: Called with (completed, total) as tasks finish

        Returns:
            List of results in the order tasks were submitted
        """
        self.logger.info(f"Executing {len(tasks)} tasks with {self.max_workers} processes")

        results = [None] * len(tasks)
        with concurrent.futures.ProcessPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(task): i for i, task in enumerate(tasks)}

            for completed, future in enumerate(concurrent.futures.as_completed(futures), start=1):
                try:
                    results[futures[future]] = future.result()
                except Exception as e:
                    self.logger.error(f"Task failed: {str(e)}")
                    raise
                if progress_callback:
                    progress_callback(completed, len(tasks))

        self.logger.info(f"All {len(tasks)} processes completed")
        return results
