"""Bounded collaborator calls.

``call_with_deadline`` runs a callable on a worker thread and waits at
most ``timeout`` seconds for it.  On expiry the caller gets a
``StepTimeoutError`` and moves on; the worker is abandoned, not killed,
so collaborators should also bound their own I/O.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

T = TypeVar("T")


class StepTimeoutError(TimeoutError):
    """Raised when a collaborator call does not finish before its deadline."""


def call_with_deadline(
    fn: Callable[..., T],
    *args: Any,
    timeout: float | None,
    operation: str = "",
) -> T:
    """Call ``fn(*args)`` and return its result within *timeout* seconds.

    ``timeout=None`` (or a non-positive value) calls *fn* inline with no
    deadline.  Exceptions raised by *fn* propagate unchanged.
    """
    if timeout is None or timeout <= 0:
        return fn(*args)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="patchforge-step")
    try:
        future = executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise StepTimeoutError(
                f"{operation or getattr(fn, '__name__', 'call')} exceeded {timeout}s deadline"
            ) from None
    finally:
        executor.shutdown(wait=False)
