"""Running callables concurrently and collecting the errors they raise."""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable, Sequence

from kindtool.errors import new_aggregate

__all__ = ["until_error_concurrent", "aggregate_concurrent"]


def _start(func: Callable[[], object], results: queue.Queue) -> threading.Thread:
    def worker() -> None:
        try:
            func()
        except Exception as exc:  # noqa: BLE001 - collected for the caller
            results.put(exc)
        else:
            results.put(None)

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    return thread


def until_error_concurrent(funcs: Sequence[Callable[[], object]]) -> None:
    """Run funcs in separate threads and raise the first error any of them raises.

    Returns as soon as an error is seen, without waiting for the remaining
    callables; returns None once all have finished without error.
    """
    results: queue.Queue = queue.Queue()
    for func in funcs:
        _start(func, results)
    for _ in funcs:
        err = results.get()
        if err is not None:
            raise err


def aggregate_concurrent(funcs: Sequence[Callable[[], object]]) -> None:
    """Run funcs concurrently, wait for all, and raise what failed.

    A single error is raised as is; several are raised together as an aggregate.
    """
    results: queue.Queue = queue.Queue()
    threads = [_start(func, results) for func in funcs]
    for thread in threads:
        thread.join()
    errs = []
    while not results.empty():
        err = results.get()
        if err is not None:
            errs.append(err)
    if len(errs) > 1:
        raise new_aggregate(errs)
    if errs:
        raise errs[0]