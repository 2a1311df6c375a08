"""Bounded fan-out for independent backend calls.

Used when a step issues calls that do not depend on each other (sub-question
searches, one query against several searchers). The pool size is fixed and the
call returns only once every task has finished.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_MAX_WORKERS = 4


def run_bounded(
    fn: Callable[[T], R],
    inputs: Sequence[T],
    max_workers: int = DEFAULT_MAX_WORKERS
) -> List[R]:
    """
    Apply ``fn`` to every input with at most ``max_workers`` threads.

    Results are returned in input order. The first exception raised by any
    task is re-raised after all tasks have settled.

    Args:
        fn: Function to apply
        inputs: Independent inputs
        max_workers: Pool size (must be >= 1)

    Returns:
        List of results aligned with ``inputs``
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    if not inputs:
        return []
    if len(inputs) == 1 or max_workers == 1:
        return [fn(value) for value in inputs]

    workers = min(max_workers, len(inputs))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(fn, value) for value in inputs]

    # Leaving the with-block waits for every future
    errors = [f.exception() for f in futures if f.exception() is not None]
    if errors:
        logger.debug(f"{len(errors)}/{len(futures)} concurrent calls failed")
        raise errors[0]
    return [f.result() for f in futures]
