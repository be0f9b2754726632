from __future__ import annotations

import asyncio

import pytest

from app.client.quiz_timer import WARNING_AT_SECONDS, QuizTimer


class Recorder:
    def __init__(self, fail: bool = False) -> None:
        self.time_up = 0
        self.warnings: list[int] = []
        self.errors: list[Exception] = []
        self._fail = fail

    async def on_time_up(self) -> None:
        self.time_up += 1
        if self._fail:
            raise RuntimeError("submit failed")

    def timer(self, seconds: int) -> QuizTimer:
        return QuizTimer(
            seconds,
            on_time_up=self.on_time_up,
            on_warning=self.warnings.append,
            on_error=self.errors.append,
        )


def _tick(timer: QuizTimer, n: int) -> None:
    async def run():
        for _ in range(n):
            await timer.tick()

    asyncio.run(run())


def test_counts_down_and_fires_time_up_once() -> None:
    rec = Recorder()
    timer = rec.timer(3)

    _tick(timer, 2)
    assert (timer.remaining, timer.status, rec.time_up) == (1, "running", 0)

    _tick(timer, 5)
    assert (timer.remaining, timer.status, rec.time_up) == (0, "expired", 1)


def test_warning_fires_once_at_five_minutes() -> None:
    rec = Recorder()
    timer = rec.timer(WARNING_AT_SECONDS + 2)

    _tick(timer, 1)
    assert rec.warnings == []
    _tick(timer, 1)
    assert rec.warnings == [WARNING_AT_SECONDS]
    _tick(timer, 10)
    assert rec.warnings == [WARNING_AT_SECONDS]


def test_short_quiz_never_warns() -> None:
    rec = Recorder()
    timer = rec.timer(60)
    _tick(timer, 60)
    assert rec.warnings == []
    assert rec.time_up == 1


def test_pause_freezes_and_resume_continues() -> None:
    rec = Recorder()
    timer = rec.timer(10)
    _tick(timer, 2)
    timer.pause()
    _tick(timer, 5)
    assert (timer.remaining, timer.status) == (8, "paused")
    timer.resume()
    _tick(timer, 1)
    assert timer.remaining == 7


def test_cancel_is_final() -> None:
    rec = Recorder()
    timer = rec.timer(2)
    timer.cancel()
    timer.resume()
    _tick(timer, 5)
    assert timer.status == "cancelled"
    assert rec.time_up == 0


def test_time_up_failure_is_reported_not_raised() -> None:
    rec = Recorder(fail=True)
    timer = rec.timer(1)
    _tick(timer, 1)
    assert timer.status == "expired"
    assert [str(e) for e in rec.errors] == ["submit failed"]


def test_for_minutes_and_minimum() -> None:
    assert QuizTimer.for_minutes(2, on_time_up=Recorder().on_time_up).remaining == 120
    with pytest.raises(ValueError):
        QuizTimer(0, on_time_up=Recorder().on_time_up)


def test_run_loop_stops_when_expired() -> None:
    rec = Recorder()
    timer = QuizTimer(3, on_time_up=rec.on_time_up, interval=0)
    state = asyncio.run(timer.run())
    assert state.status == "expired"
    assert rec.time_up == 1
