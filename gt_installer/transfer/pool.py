"""Bounded fan-out shared by the fetcher and the expander."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], R],
    max_workers: int,
    on_complete: Callable[[T, R], None] | None = None,
    on_abort: Callable[[], None] | None = None,
    name: str = "worker",
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``max_workers`` in flight.

    Results are returned in input order. On the first failure queued items
    are cancelled, ``on_abort`` is called so in-flight workers can stop
    early, and the failure is re-raised once those workers have returned.
    Their own results and errors are discarded.

    Args:
        items: Work items.
        worker: Callable applied to each item.
        max_workers: Maximum number of concurrently running items.
        on_complete: Called with each item and its result as it finishes.
        on_abort: Called once when the run is abandoned.
        name: Thread name prefix.

    Returns:
        Worker results in the order of ``items``.
    """
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")
    if not items:
        return []

    results: list[R | None] = [None] * len(items)
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
    try:
        futures = {executor.submit(worker, item): index for index, item in enumerate(items)}
        for future in as_completed(futures):
            index = futures[future]
            result = future.result()
            results[index] = result
            if on_complete is not None:
                on_complete(items[index], result)
    except BaseException:
        if on_abort is not None:
            on_abort()
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    executor.shutdown(wait=True)
    return results  # type: ignore[return-value]


__all__ = ["run_bounded"]
