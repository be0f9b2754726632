"""Quiz-taking client.

Holds one attempt on the learner's side: starts it over HTTP, keeps the
answers locally (nothing is sent before submit), runs the countdown when
the quiz is timed, and submits once.

    async with httpx.AsyncClient(base_url=API_URL) as http:
        async with QuizSession(http, quiz_id, token=token) as session:
            await session.start()
            session.answer(question_id, "B")
            result = await session.submit()

For a timed quiz the session owns the countdown: ``start()`` schedules
``timer.run()`` as ``timer_task`` on the running loop, and ``close()``
(or leaving the ``async with`` block) cancels the timer and waits for that
task.  Pass ``run_timer=False`` to drive ``timer.tick()`` yourself.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

import httpx

from app.client.quiz_timer import QuizTimer
from app.core.errors import InvalidState

logger = logging.getLogger(__name__)


class QuizSession:
    def __init__(
        self,
        http: httpx.AsyncClient,
        quiz_id: str,
        *,
        token: str,
        on_warning: Callable[[int], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        run_timer: bool = True,
        tick_interval: float = 1.0,
    ) -> None:
        self._http = http
        self._headers = {"Authorization": f"Bearer {token}"}
        self._on_warning = on_warning
        self._on_error = on_error
        self._run_timer = run_timer
        self._tick_interval = tick_interval
        self.quiz_id = str(quiz_id)
        self.attempt_id: str | None = None
        self.questions: list[dict[str, Any]] = []
        self.answers: dict[str, Any] = {}
        self.timer: QuizTimer | None = None
        self.timer_task: asyncio.Task | None = None
        self.result: dict[str, Any] | None = None
        self._submitting = False

    async def __aenter__(self) -> QuizSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def submitted(self) -> bool:
        return self.result is not None

    async def start(self) -> dict[str, Any]:
        response = await self._http.post(
            f"/v1/quizzes/{self.quiz_id}/attempts", headers=self._headers
        )
        response.raise_for_status()
        body = response.json()

        self.attempt_id = body["attempt"]["id"]
        self.questions = body["questions"]
        seconds = body.get("remaining_seconds")
        if seconds is None and body.get("time_limit"):
            seconds = body["time_limit"] * 60
        if seconds is not None:
            self.timer = QuizTimer(
                max(int(seconds), 1),
                on_time_up=self._time_up,
                on_warning=self._on_warning,
                on_error=self._on_error,
                interval=self._tick_interval,
            )
            if self._run_timer:
                self.timer_task = asyncio.create_task(self.timer.run())
        logger.info("Attempt %s started for quiz %s", self.attempt_id, self.quiz_id)
        return body

    def answer(self, question_id: str, value: Any) -> None:
        if self.submitted:
            raise InvalidState("Attempt has already been submitted")
        self.answers[str(question_id)] = value

    async def submit(self, *, is_auto_submitted: bool = False) -> dict[str, Any]:
        if self.attempt_id is None:
            raise InvalidState("Attempt has not been started")
        if self.submitted or self._submitting:
            raise InvalidState("Attempt has already been submitted")

        self._submitting = True
        if self.timer is not None:
            self.timer.pause()
        try:
            response = await self._http.post(
                f"/v1/quizzes/attempts/{self.attempt_id}/submit",
                json={"answers": self.answers, "is_auto_submitted": is_auto_submitted},
                headers=self._headers,
            )
            if response.status_code == 409:
                raise InvalidState(response.json().get("message"))
            response.raise_for_status()
        except InvalidState:
            if self.timer is not None:
                self.timer.cancel()
            raise
        except Exception:
            if self.timer is not None:
                self.timer.resume()
            raise
        finally:
            self._submitting = False

        self.result = response.json()
        if self.timer is not None:
            self.timer.cancel()
        logger.info(
            "Attempt %s submitted auto=%s percentage=%s",
            self.attempt_id,
            is_auto_submitted,
            self.result.get("percentage"),
        )
        return self.result

    async def _time_up(self) -> None:
        await self.submit(is_auto_submitted=True)

    async def close(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
        task, self.timer_task = self.timer_task, None
        if task is None or task is asyncio.current_task():
            return
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
