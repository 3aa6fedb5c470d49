"""Parallel Executor - bounded fan-out/fan-in with results kept in task order."""

import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError, as_completed
from typing import Any, Callable, Optional

from reelforge.core.config import Settings
from reelforge.core.exceptions import RenderTimeout
from reelforge.utils.deadline import JobDeadline


class ParallelExecutor:
    """Manages controlled parallelism for per-scene work within one job."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.max_workers = getattr(settings, "max_parallel_scene_renders", 3)

    def execute_ordered(
        self,
        tasks: list[Callable[[], Any]],
        task_names: Optional[list[str]] = None,
        max_workers: Optional[int] = None,
        deadline: Optional[JobDeadline] = None,
    ) -> list[Any]:
        """
        Run tasks with bounded concurrency and fail fast.

        Results are written into a pre-sized, index-keyed list, so the
        returned order always matches the order of tasks regardless of
        completion order. On the first failure, tasks that have not started
        are cancelled and running ones are awaited before the error is
        re-raised, so no task outlives this call.

        Args:
            tasks: Callables to execute
            task_names: Optional names for logging
            max_workers: Pool size (defaults to max_parallel_scene_renders)
            deadline: Optional job deadline bounding the whole batch

        Returns:
            One result per task, in task order

        Raises:
            Exception: The first exception raised by any task
            RenderTimeout: If the deadline passes before all tasks finish
        """
        if not tasks:
            return []

        names = [
            task_names[i] if task_names and i < len(task_names) else f"task_{i + 1}"
            for i in range(len(tasks))
        ]
        max_workers = max(1, min(max_workers or self.max_workers, len(tasks)))
        results: list[Any] = [None] * len(tasks)
        start_time = time.time()

        # If max_workers is 1, execute sequentially
        if max_workers == 1:
            self.logger.info(f"Sequential execution mode: {len(tasks)} tasks")
            for i, task in enumerate(tasks):
                if deadline is not None:
                    deadline.check(names[i])
                task_start = time.time()
                try:
                    results[i] = task()
                except Exception as e:
                    self.logger.error(f"❌ {names[i]} failed after {time.time() - task_start:.2f}s: {e}")
                    raise
                self.logger.info(f"✅ {names[i]} completed in {time.time() - task_start:.2f}s")
            return results

        # Parallel execution
        self.logger.info(f"Parallel execution mode: {len(tasks)} tasks with max {max_workers} workers")
        first_error: Optional[BaseException] = None
        completed_count = 0

        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reelforge-render")
        future_to_index = {}
        try:
            for i, task in enumerate(tasks):
                future_to_index[executor.submit(task)] = i

            timeout = deadline.remaining() if deadline is not None else None
            try:
                for future in as_completed(future_to_index, timeout=timeout):
                    index = future_to_index[future]
                    completed_count += 1
                    try:
                        results[index] = future.result()
                    except Exception as e:
                        self.logger.error(
                            f"❌ {names[index]} failed ({completed_count}/{len(tasks)}) "
                            f"after {time.time() - start_time:.2f}s: {e}"
                        )
                        first_error = e
                        break
                    self.logger.info(
                        f"✅ {names[index]} completed ({completed_count}/{len(tasks)}) "
                        f"in {time.time() - start_time:.2f}s"
                    )
            except FuturesTimeoutError:
                first_error = RenderTimeout(
                    f"Render job exceeded {deadline.timeout_seconds:.0f}s with "
                    f"{len(tasks) - completed_count}/{len(tasks)} tasks unfinished"
                )
                self.logger.error(str(first_error))
        finally:
            if first_error is not None:
                if deadline is not None:
                    deadline.cancel("aborted")
                cancelled = sum(1 for future in future_to_index if future.cancel())
                if cancelled:
                    self.logger.warning(f"Cancelled {cancelled} pending task(s) after failure")
            # Running tasks are awaited so none outlives the caller's cleanup.
            executor.shutdown(wait=True)

        if first_error is not None:
            raise first_error

        self.logger.info(
            f"Batch complete: {len(tasks)}/{len(tasks)} successful in {time.time() - start_time:.2f}s "
            f"(parallelism: {max_workers} workers)"
        )
        return results
