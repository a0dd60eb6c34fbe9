"""Cancellable one-second countdown ticks bound to a single owner.

A :class:`CountdownTimer` hands every tick an opaque token identifying the
run that produced it. Owners check the token with :meth:`is_current` under
their own lock, so a tick that was already in flight when :meth:`stop` ran
is recognised as stale and dropped instead of mutating state.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

__all__ = [
    "TimerHandle",
    "TickScheduler",
    "ThreadTickScheduler",
    "CountdownTimer",
]

TickCallback = Callable[[], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TickScheduler(Protocol):
    """Runs ``callback`` every ``interval`` seconds until cancelled."""

    def schedule(
        self, interval: float, callback: TickCallback
    ) -> TimerHandle: ...


class _TickThread(threading.Thread):
    def __init__(
        self,
        interval: float,
        callback: TickCallback,
        logger: logging.Logger,
    ) -> None:
        super().__init__(name="exam-quizzer-countdown", daemon=True)
        self._interval = interval
        self._callback = callback
        self._logger = logger
        self._stopped = threading.Event()

    def run(self) -> None:
        # Ticks are pinned to a monotonic schedule so slow callbacks do not
        # stretch the countdown.
        deadline = time.monotonic() + self._interval
        while not self._stopped.wait(max(0.0, deadline - time.monotonic())):
            try:
                self._callback()
            except Exception:
                self._logger.exception("Countdown tick failed")
            deadline += self._interval

    def cancel(self) -> None:
        self._stopped.set()


class ThreadTickScheduler:
    """Default scheduler: one daemon thread per scheduled countdown."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def schedule(self, interval: float, callback: TickCallback) -> TimerHandle:
        thread = _TickThread(interval, callback, self._logger)
        thread.start()
        return thread


class CountdownTimer:
    """Owned countdown handle; at most one scheduled run at a time."""

    def __init__(
        self,
        scheduler: TickScheduler,
        on_tick: Callable[[object], None],
        *,
        interval: float = 1.0,
    ) -> None:
        self._scheduler = scheduler
        self._on_tick = on_tick
        self._interval = interval
        self._handle: TimerHandle | None = None
        self._token: object | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        """Start ticking, cancelling whatever run was active before."""

        self.stop()
        token = object()
        self._token = token
        self._handle = self._scheduler.schedule(
            self._interval, lambda: self._on_tick(token)
        )

    def stop(self) -> None:
        """Cancel the active run. Safe to call repeatedly."""

        handle, self._handle, self._token = self._handle, None, None
        if handle is not None:
            handle.cancel()

    def is_current(self, token: object) -> bool:
        return token is not None and token is self._token

    def __enter__(self) -> "CountdownTimer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.stop()
