"""
Playback controller tests: fallback chain, mutual exclusion with capture,
serialisation and interruption.
"""
import asyncio

from voice_interview.config import SessionTimings
from voice_interview.interview.capture import CaptureController
from voice_interview.interview.conversation import ConversationLog
from voice_interview.interview.events import EventType, InterviewEventBus
from voice_interview.interview.models import CaptureState, InterviewProblem, InterviewSession, SessionPhase
from voice_interview.interview.playback import PlaybackController
from voice_interview.interview.testing import (
    MockAudioOutput, MockCaptureDevice, MockLocalSynthesizer, MockSynthesizer, wait_for,
)

VOICE = "en-US-Neural2-F"


def make_playback(synthesizer=None, output=None, local=None):
    session = InterviewSession(
        log=ConversationLog(),
        problem=InterviewProblem("Two Sum"),
        duration=60,
        time_remaining=60,
        phase=SessionPhase.ACTIVE,
    )
    device = MockCaptureDevice()
    device.is_speaking = lambda: session.is_ai_speaking
    bus = InterviewEventBus()
    timings = SessionTimings.immediate()
    capture = CaptureController(device, session, timings, sink=lambda event: None, event_bus=bus)

    if output is None:
        output = MockAudioOutput(capture_device=device)
    output.capture_device = device
    output.session = session

    playback = PlaybackController(
        synthesizer if synthesizer is not None else MockSynthesizer(),
        output, capture, session, timings,
        voice=VOICE,
        local_synthesizer=local or MockLocalSynthesizer(is_available=False),
        event_bus=bus,
    )
    return playback, capture, device, session, bus


def test_speak_suspends_capture_and_resumes_it():
    async def scenario():
        playback, capture, device, session, _ = make_playback()
        await capture.start()

        assert await playback.speak("What is the time complexity?")

        output = playback.output
        assert len(output.played) == 1
        assert output.violations == []
        assert device.violations == []
        assert not session.is_ai_speaking
        assert await wait_for(lambda: capture.is_listening)

    asyncio.run(scenario())


def test_uses_configured_voice_first():
    async def scenario():
        synthesizer = MockSynthesizer()
        playback, _, _, _, _ = make_playback(synthesizer=synthesizer)

        assert await playback.speak("Hello")
        assert synthesizer.requests == [VOICE]

    asyncio.run(scenario())


def test_falls_back_to_default_voice():
    async def scenario():
        synthesizer = MockSynthesizer(fail_voices={VOICE})
        playback, _, _, _, _ = make_playback(synthesizer=synthesizer)

        assert await playback.speak("Hello")
        assert synthesizer.requests == [VOICE, None]
        assert len(playback.output.played) == 1

    asyncio.run(scenario())


def test_falls_back_to_local_synthesizer():
    async def scenario():
        local = MockLocalSynthesizer()
        playback, _, _, _, _ = make_playback(synthesizer=MockSynthesizer(fail_all=True), local=local)

        assert await playback.speak("Hello")
        assert local.spoken == ["Hello"]

    asyncio.run(scenario())


def test_output_failure_falls_back_to_local_synthesizer():
    async def scenario():
        local = MockLocalSynthesizer()
        playback, _, _, _, _ = make_playback(output=MockAudioOutput(fail=True), local=local)

        assert await playback.speak("Hello")
        assert local.spoken == ["Hello"]

    asyncio.run(scenario())


def test_unavailable_playback_resolves_with_event():
    async def scenario():
        local = MockLocalSynthesizer(fail=True)
        playback, capture, _, session, bus = make_playback(synthesizer=MockSynthesizer(fail_all=True), local=local)
        unavailable = []
        bus.subscribe(EventType.PLAYBACK_UNAVAILABLE, unavailable.append)

        assert not await playback.speak("Hello")

        assert len(unavailable) == 1
        assert unavailable[0].data["text"] == "Hello"
        assert not session.is_ai_speaking
        assert await wait_for(lambda: capture.is_listening)

    asyncio.run(scenario())


class ConcurrencyTrackingOutput(MockAudioOutput):

    def __init__(self):
        super().__init__(play_duration=0.02)
        self.active = 0
        self.max_active = 0

    async def play(self, audio):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await super().play(audio)
        finally:
            self.active -= 1


def test_speak_calls_are_serialised():
    async def scenario():
        output = ConcurrencyTrackingOutput()
        playback, _, _, _, _ = make_playback(output=output)

        results = await asyncio.gather(playback.speak("first"), playback.speak("second"))

        assert results == [True, True]
        assert len(output.played) == 2
        assert output.max_active == 1

    asyncio.run(scenario())


def test_stop_interrupts_playback():
    async def scenario():
        output = MockAudioOutput(play_duration=1.0)
        playback, _, _, session, _ = make_playback(output=output)

        task = asyncio.create_task(playback.speak("a very long explanation"))
        assert await wait_for(lambda: playback.is_playing)
        await playback.stop()

        assert await asyncio.wait_for(task, 0.5) is False
        assert output.stop_calls == 1
        assert not session.is_ai_speaking

    asyncio.run(scenario())


def test_no_capture_restart_unless_active():
    async def scenario():
        playback, capture, _, session, _ = make_playback()
        session.phase = SessionPhase.PAUSED

        assert await playback.speak("Hello")
        await asyncio.sleep(0.05)

        assert not capture.has_pending_restart
        assert session.capture_state != CaptureState.LISTENING

    asyncio.run(scenario())
