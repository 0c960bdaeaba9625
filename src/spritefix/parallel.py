"""Parallel processing utilities for per-frame and per-pair work.

Decoding, analysis, normalization and compositing are independent per frame
(or per adjacent pair), so they are fanned out to a thread pool and joined
before the next stage starts. Pillow and numpy release the GIL for the heavy
parts, which makes threads the right pool for this workload.
"""

import logging
import multiprocessing as mp
import os
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ParallelConfig:
    """Configuration for parallel processing."""

    max_workers: int | None = None
    enable_profiling: bool = False

    def __post_init__(self) -> None:
        """Initialize configuration from environment variables."""
        if self.max_workers is None:
            env_workers = os.environ.get("SPRITEFIX_MAX_PARALLEL_WORKERS")
            if env_workers:
                try:
                    self.max_workers = int(env_workers)
                except ValueError:
                    logger.warning(
                        f"Invalid SPRITEFIX_MAX_PARALLEL_WORKERS: {env_workers}"
                    )
                    self.max_workers = mp.cpu_count()
            else:
                self.max_workers = mp.cpu_count()

        # Ensure reasonable bounds
        self.max_workers = max(1, min(self.max_workers, mp.cpu_count() * 2))

        if not self.enable_profiling:
            self.enable_profiling = (
                os.environ.get("SPRITEFIX_ENABLE_PROFILING", "false").lower() == "true"
            )


class ParallelFrameProcessor:
    """Runs independent per-item work on a thread pool, preserving order."""

    def __init__(self, config: ParallelConfig | None = None):
        self.config = config or ParallelConfig()
        self._profiling_data: dict[str, Any] = {}

    def map(
        self, func: Callable[[T], R], items: Sequence[T], stage: str = "map"
    ) -> list[R]:
        """Apply ``func`` to every item concurrently.

        Results come back in input order. If any task fails, the exception of
        the lowest failing item index is re-raised once all tasks have finished,
        so the sequential and threaded paths fail the same way.

        Args:
            func: Function applied to each item
            items: Items to process
            stage: Name used in log and profiling output

        Returns:
            List of results, one per item, in input order
        """
        if not items:
            return []

        start_time = time.perf_counter()

        if self.config.max_workers == 1 or len(items) == 1:
            results = [func(item) for item in items]
        else:
            results = self._map_with_threads(func, items)

        if self.config.enable_profiling:
            elapsed = time.perf_counter() - start_time
            self._profiling_data[stage] = {"seconds": elapsed, "items": len(items)}
            logger.info(f"{stage}: {len(items)} items in {elapsed:.3f}s")

        return results

    def _map_with_threads(self, func: Callable[[T], R], items: Sequence[T]) -> list[R]:
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures: dict[Future, int] = {
                executor.submit(func, item): i for i, item in enumerate(items)
            }

            results: list[Any] = [None] * len(items)
            errors: dict[int, BaseException] = {}
            for future in as_completed(futures):
                idx = futures[future]
                try:
                    results[idx] = future.result()
                except Exception as e:
                    logger.debug(f"Task {idx} failed: {e}")
                    errors[idx] = e

        if errors:
            raise errors[min(errors)]
        return results

    def run_all(self, tasks: dict[str, Callable[[], R]]) -> dict[str, R]:
        """Run independent zero-argument tasks concurrently, keyed by name."""
        names = list(tasks)
        values = self.map(lambda name: tasks[name](), names, stage="run_all")
        return dict(zip(names, values))

    def get_profiling_data(self) -> dict:
        """Get profiling data from the last runs."""
        return self._profiling_data.copy()
