"""
Deadlines and fan-out for embedding and store calls.

Work runs on worker threads so a hung remote call can be abandoned at its
deadline. Abandoned calls are not cancelled: they finish (or fail) on
their own thread and their result is discarded.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Optional, TypeVar

from .errors import Timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_timeout(
    fn: Callable[..., T],
    *args,
    timeout: Optional[float],
    what: str = "operation",
) -> T:
    """
    Run ``fn(*args)`` and return its result, or raise Timeout.

    ``timeout=None`` runs inline with no deadline. Exceptions raised by
    ``fn`` propagate unchanged.
    """
    if timeout is None:
        return fn(*args)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="keepsake-call")
    try:
        future = executor.submit(fn, *args)
        done, _ = wait([future], timeout=timeout)
    finally:
        executor.shutdown(wait=False)

    if not done:
        logger.warning("%s exceeded %.1fs deadline", what, timeout)
        raise Timeout(f"{what} did not finish within {timeout:g}s")
    return future.result()


def fan_out(
    calls: list[Callable[[], object]],
    *,
    timeout: Optional[float],
    max_workers: int = 8,
) -> list[BaseException]:
    """
    Run independent calls concurrently and wait for all of them.

    A failing call does not stop its siblings. Returns the errors, in
    submission order; calls still running at the deadline contribute a
    single Timeout at the end. An empty list means every call succeeded.
    """
    if not calls:
        return []

    workers = max(1, min(max_workers, len(calls)))
    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="keepsake-fanout")
    try:
        futures = [executor.submit(call) for call in calls]
        done, not_done = wait(futures, timeout=timeout)
    finally:
        executor.shutdown(wait=False)

    errors: list[BaseException] = []
    for future in futures:
        if future in done and future.exception() is not None:
            errors.append(future.exception())
    if not_done:
        errors.append(Timeout(
            f"{len(not_done)} of {len(futures)} writes did not finish within {timeout:g}s"
        ))
    return errors
