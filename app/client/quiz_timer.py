"""Cooperative countdown for a timed quiz attempt.

The timer owns no thread.  ``tick()`` advances it by one second and is
what tests drive directly; ``run()`` is the asyncio loop that calls it
once per interval until the timer is cancelled or expires.

State lives in one immutable ``TimerState`` value replaced on every
change, so a snapshot taken by a caller never shifts underneath it.

    running --pause--> paused --resume--> running
    running / paused --cancel--> cancelled
    running --tick to 0--> expired  (on_time_up runs exactly once)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Literal

logger = logging.getLogger(__name__)

TimerStatus = Literal["running", "paused", "cancelled", "expired"]

WARNING_AT_SECONDS = 300


@dataclass(frozen=True, slots=True)
class TimerState:
    remaining: int
    status: TimerStatus = "running"
    warned: bool = False

    @property
    def is_finished(self) -> bool:
        return self.status in ("cancelled", "expired")


class QuizTimer:
    def __init__(
        self,
        seconds: int,
        *,
        on_time_up: Callable[[], Awaitable[None]],
        on_warning: Callable[[int], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        interval: float = 1.0,
    ) -> None:
        if seconds < 1:
            raise ValueError("timer needs at least one second")
        self.state = TimerState(remaining=seconds)
        self._on_time_up = on_time_up
        self._on_warning = on_warning
        self._on_error = on_error
        self._interval = interval

    @classmethod
    def for_minutes(cls, time_limit: int, **kwargs) -> QuizTimer:
        return cls(time_limit * 60, **kwargs)

    @property
    def remaining(self) -> int:
        return self.state.remaining

    @property
    def status(self) -> TimerStatus:
        return self.state.status

    def pause(self) -> None:
        if self.state.status == "running":
            self.state = replace(self.state, status="paused")

    def resume(self) -> None:
        if self.state.status == "paused":
            self.state = replace(self.state, status="running")

    def cancel(self) -> None:
        if not self.state.is_finished:
            self.state = replace(self.state, status="cancelled")

    async def tick(self) -> TimerState:
        if self.state.status != "running":
            return self.state

        remaining = self.state.remaining - 1
        self.state = replace(self.state, remaining=max(remaining, 0))

        if remaining == WARNING_AT_SECONDS and not self.state.warned:
            self.state = replace(self.state, warned=True)
            if self._on_warning is not None:
                self._on_warning(remaining)

        if remaining <= 0:
            # expire before the callback so a re-entrant tick is a no-op
            self.state = replace(self.state, status="expired")
            try:
                await self._on_time_up()
            except Exception as e:
                logger.exception("Time-up handler failed")
                if self._on_error is not None:
                    self._on_error(e)
        return self.state

    async def run(self) -> TimerState:
        while not self.state.is_finished:
            await asyncio.sleep(self._interval)
            await self.tick()
        return self.state
