"""
Single status string that falls back to an idle message after a delay.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol

IDLE_MESSAGE = "Ready"
DEFAULT_EXPIRY_SECONDS = 5.0


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later``; the asyncio event loop qualifies."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class StatusLine:
    def __init__(
        self,
        on_change: Callable[[str], None],
        *,
        scheduler: Optional[Scheduler] = None,
        expiry_seconds: float = DEFAULT_EXPIRY_SECONDS,
        idle_message: str = IDLE_MESSAGE,
    ) -> None:
        self._on_change = on_change
        self._scheduler = scheduler
        self._expiry_seconds = expiry_seconds
        self._idle_message = idle_message
        self._current = idle_message
        self._transient = False
        self._expires_at: Optional[float] = None
        self._timer: Optional[TimerHandle] = None

    @property
    def current(self) -> str:
        return self._current

    @property
    def is_transient(self) -> bool:
        return self._transient

    @property
    def expires_at(self) -> Optional[float]:
        return self._expires_at

    @property
    def has_pending_expiry(self) -> bool:
        return self._timer is not None

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler

    def cancel(self) -> None:
        timer = self._timer
        self._timer = None
        self._expires_at = None
        if timer is not None:
            timer.cancel()

    def set(self, message: str, transient: bool = True) -> None:
        self.cancel()
        self._current = message
        self._transient = transient and message != self._idle_message
        if self._transient:
            scheduler = self._get_scheduler()
            self._timer = scheduler.call_later(self._expiry_seconds, self._expire)
            loop_time = getattr(scheduler, "time", None)
            if callable(loop_time):
                self._expires_at = loop_time() + self._expiry_seconds
        self._on_change(message)

    def _expire(self) -> None:
        self._timer = None
        self._expires_at = None
        self._transient = False
        self._current = self._idle_message
        self._on_change(self._idle_message)
