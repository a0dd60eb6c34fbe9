"""Deterministic stand-ins for the countdown scheduler and import executor.

``ManualTickScheduler`` only ticks when a test calls :meth:`fire`, and the
executors run gateway calls either immediately or on demand so import races
can be staged step by step.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future
from typing import Any, Callable, List, Tuple


class ManualHandle:
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTickScheduler:
    """Records scheduled countdowns; ticks only via :meth:`fire`."""

    def __init__(self) -> None:
        self.handles: List[ManualHandle] = []

    def schedule(
        self, interval: float, callback: Callable[[], None]
    ) -> ManualHandle:
        handle = ManualHandle(interval, callback)
        self.handles.append(handle)
        return handle

    @property
    def live(self) -> List[ManualHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def fire(self, count: int = 1) -> None:
        """Deliver ``count`` ticks to every countdown still scheduled."""

        for _ in range(count):
            for handle in self.live:
                handle.callback()


def _run_into(future: Future, fn: Callable[..., Any], args, kwargs) -> None:
    if not future.set_running_or_notify_cancel():
        return
    try:
        result = fn(*args, **kwargs)
    except BaseException as exc:  # noqa: BLE001 - mirror executor semantics
        future.set_exception(exc)
    else:
        future.set_result(result)


class InlineExecutor(Executor):
    """Runs each submitted call synchronously in the caller's thread."""

    def submit(self, fn, /, *args, **kwargs) -> Future:  # type: ignore[override]
        future: Future = Future()
        _run_into(future, fn, args, kwargs)
        return future


class DeferredExecutor(Executor):
    """Queues submitted calls until the test runs them explicitly."""

    def __init__(self) -> None:
        self.pending: List[Tuple[Future, Callable[..., Any], tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs) -> Future:  # type: ignore[override]
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_next(self) -> None:
        future, fn, args, kwargs = self.pending.pop(0)
        _run_into(future, fn, args, kwargs)

    def run_all(self) -> None:
        while self.pending:
            self.run_next()
