# =============================================================================
# FILE: fbas_reward_distributor/utils/parallel.py
"""
Process-pool helper for partitioned analysis work

Tasks are independent; partial results come back in task order so that the
caller's reduction (concatenation or summation) never depends on scheduling.
"""
# =============================================================================

from concurrent.futures import ProcessPoolExecutor
from typing import Any, Callable, List, Optional, Sequence
import logging
import os

logger = logging.getLogger(__name__)


def resolve_workers(workers: Optional[int]) -> int:
    """Number of worker processes; None or 0 means one per CPU"""
    if workers is None or workers == 0:
        return os.cpu_count() or 1
    if workers < 0:
        raise ValueError(f"workers must be non-negative, got {workers}")
    return workers


def run_partitioned(
    fn: Callable[..., Any],
    tasks: Sequence[tuple],
    workers: Optional[int] = 1
) -> List[Any]:
    """
    Apply `fn(*task)` to every task, in parallel when workers > 1

    Parameters:
    -----------
    fn : Callable
        Module-level (picklable) function
    tasks : Sequence[tuple]
        Positional arguments for each call
    workers : int, optional
        Worker processes (1 = serial, None/0 = one per CPU)

    Returns:
    --------
    results : list
        fn results in the order of `tasks`
    """
    n_workers = min(resolve_workers(workers), max(len(tasks), 1))

    if n_workers <= 1:
        return [fn(*task) for task in tasks]

    logger.debug(f"Dispatching {len(tasks)} tasks to {n_workers} workers")
    with ProcessPoolExecutor(max_workers=n_workers) as executor:
        futures = [executor.submit(fn, *task) for task in tasks]
        return [future.result() for future in futures]
