"""
Countdown timer and health monitor tests.
"""
import asyncio

from voice_interview.config import SessionTimings
from voice_interview.interview.capture import CaptureController
from voice_interview.interview.conversation import ConversationLog
from voice_interview.interview.models import InterviewProblem, InterviewSession, SessionPhase
from voice_interview.interview.testing import MockCaptureDevice, wait_for
from voice_interview.interview.timers import CountdownTimer, HealthMonitor, TimerState


def make_session(duration: int = 60) -> InterviewSession:
    return InterviewSession(
        log=ConversationLog(),
        problem=InterviewProblem("Two Sum"),
        duration=duration,
        time_remaining=duration,
        phase=SessionPhase.ACTIVE,
    )


def test_countdown_expires_exactly_once():
    async def scenario():
        session = make_session(duration=3)
        expired = []
        ticks = []

        async def on_expire():
            expired.append(session.time_remaining)

        timer = CountdownTimer(session, on_expire, tick=0.001, on_tick=ticks.append)
        timer.start()
        assert timer.state == TimerState.RUNNING

        assert await wait_for(lambda: expired)
        await asyncio.sleep(0.02)

        assert expired == [0]
        assert ticks == [2, 1, 0]
        assert session.time_remaining == 0
        assert not timer.running

    asyncio.run(scenario())


def test_stop_keeps_remaining_time():
    async def scenario():
        session = make_session(duration=1000)

        async def on_expire():
            pass

        timer = CountdownTimer(session, on_expire, tick=0.001)
        timer.start()
        assert await wait_for(lambda: session.time_remaining < 1000)
        timer.stop()
        remaining = session.time_remaining
        await asyncio.sleep(0.02)
        assert session.time_remaining == remaining
        assert timer.state == TimerState.STOPPED

        timer.start()
        assert await wait_for(lambda: session.time_remaining < remaining)
        timer.stop()

    asyncio.run(scenario())


def test_countdown_does_not_tick_unless_active():
    async def scenario():
        session = make_session(duration=100)
        session.phase = SessionPhase.PAUSED

        async def on_expire():
            pass

        timer = CountdownTimer(session, on_expire, tick=0.001)
        timer.start()
        await asyncio.sleep(0.02)
        timer.stop()

        assert session.time_remaining == 100

    asyncio.run(scenario())


def test_countdown_exits_once_completed():
    async def scenario():
        session = make_session(duration=100)
        session.phase = SessionPhase.COMPLETED

        async def on_expire():
            pass

        timer = CountdownTimer(session, on_expire, tick=0.001)
        timer.start()
        assert await wait_for(lambda: not timer.running)

    asyncio.run(scenario())


def make_monitor(interval: float = 10.0):
    session = make_session()
    device = MockCaptureDevice()
    capture = CaptureController(device, session, SessionTimings.immediate(), sink=lambda event: None)
    return HealthMonitor(capture, session, interval), capture, device, session


def test_health_check_restarts_idle_capture():
    async def scenario():
        monitor, capture, device, _ = make_monitor()

        assert await monitor.check_once()
        assert capture.is_listening
        # already listening: nothing to do
        assert not await monitor.check_once()
        assert device.start_calls == 1

    asyncio.run(scenario())


def test_health_check_skipped_while_speaking_or_paused():
    async def scenario():
        monitor, _, device, session = make_monitor()

        session.is_ai_speaking = True
        assert not await monitor.check_once()
        session.is_ai_speaking = False
        session.phase = SessionPhase.PAUSED
        assert not await monitor.check_once()

        assert device.start_calls == 0

    asyncio.run(scenario())


def test_health_check_skipped_after_fatal_error():
    async def scenario():
        monitor, capture, device, _ = make_monitor()
        device.start_errors.append(PermissionError("denied"))
        await capture.start()

        assert capture.disabled
        assert not await monitor.check_once()
        assert device.start_calls == 1

    asyncio.run(scenario())


def test_monitor_loop_recovers_lost_restart():
    async def scenario():
        monitor, capture, _, _ = make_monitor(interval=0.005)

        monitor.start()
        assert await wait_for(lambda: capture.is_listening)
        monitor.stop()
        assert not monitor.running

    asyncio.run(scenario())
