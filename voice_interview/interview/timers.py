"""
Periodic tasks of a session: the countdown and the capture watchdog.
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from .capture import CaptureController
from .models import InterviewSession, SessionPhase

logger = logging.getLogger("timers")


class TimerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class _PeriodicTask:
    """Owns at most one background task; ``stop`` never cancels the caller itself."""

    def __init__(self):
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> TimerState:
        if self._task is not None and not self._task.done():
            return TimerState.RUNNING
        return TimerState.STOPPED

    @property
    def running(self) -> bool:
        return self.state == TimerState.RUNNING

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        raise NotImplementedError


class CountdownTimer(_PeriodicTask):
    """
    One tick per ``tick`` seconds while the session is Active.

    Stopping keeps ``time_remaining``; starting again resumes from it.
    Reaching zero awaits ``on_expire`` exactly once.
    """

    def __init__(self,
                 session: InterviewSession,
                 on_expire: Callable[[], Awaitable[object]],
                 tick: float = 1.0,
                 on_tick: Optional[Callable[[int], None]] = None):
        super().__init__()
        self.session = session
        self.on_expire = on_expire
        self.tick = tick
        self.on_tick = on_tick

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick)
            if self.session.phase == SessionPhase.COMPLETED:
                return
            if self.session.phase != SessionPhase.ACTIVE:
                continue

            self.session.time_remaining = max(0, self.session.time_remaining - 1)
            if self.on_tick is not None:
                self.on_tick(self.session.time_remaining)

            if self.session.time_remaining == 0:
                logger.info("Interview time expired")
                self._task = None
                await self.on_expire()
                return


class HealthMonitor(_PeriodicTask):
    """Watchdog restarting capture when a restart signal was lost."""

    def __init__(self, capture: CaptureController, session: InterviewSession, interval: float = 10.0):
        super().__init__()
        self.capture = capture
        self.session = session
        self.interval = interval

    def should_check(self) -> bool:
        return self.session.phase == SessionPhase.ACTIVE and not self.session.is_ai_speaking

    async def check_once(self) -> bool:
        """
        Run one health check.

        Returns:
            True if a capture start was issued
        """
        if not self.should_check() or self.capture.disabled:
            return False
        if self.capture.is_listening:
            return False
        logger.info("Capture is %s, restarting", self.capture.state.value)
        await self.capture.start()
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.check_once()
            except Exception as e:
                logger.error("Health check failed: %s", e)
