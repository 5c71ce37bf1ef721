"""Bounded worker pool for concurrent provider requests."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_MAX_WORKERS = 20


def run_concurrently(
    fn: Callable[[T], R],
    chunks: Iterable[T],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    parallel: bool = True,
) -> list[R]:
    """Apply ``fn`` to every chunk, at most ``max_workers`` at a time.

    The call blocks until every chunk has completed. Results keep the
    order of ``chunks``. If any call fails, pending work is cancelled and
    the first failure (in input order) is re-raised.

    Parameters
    ----------
    fn : Callable[[T], R]
        Function issuing one request.
    chunks : Iterable[T]
        Work items.
    max_workers : int, optional
        Maximum in-flight calls (default: 20).
    parallel : bool, optional
        When False, chunks run sequentially on the calling thread.

    Returns
    -------
    list[R]
        One result per chunk.
    """
    items = list(chunks)
    if not parallel or max_workers <= 1 or len(items) <= 1:
        return [fn(item) for item in items]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as pool:
        futures = [pool.submit(fn, item) for item in items]
        try:
            return [future.result() for future in futures]
        except BaseException:
            for future in futures:
                future.cancel()
            raise
