"""
Microphone recognizer tests with a fake PyAudio stream.

Run with: pytest tests/test_microphone.py -v
"""
import asyncio
import time

import numpy as np

from voice_interview.config import SessionTimings
from voice_interview.infrastructure.audio.processing.capture import MicrophoneRecognizer
from voice_interview.interview.capture import CaptureController
from voice_interview.interview.conversation import ConversationLog
from voice_interview.interview.models import CaptureState, InterviewProblem, InterviewSession, SessionPhase
from voice_interview.interview.services import CaptureEventType
from voice_interview.interview.testing import wait_for

FRAME_SIZE = 480  # 30 ms at 16 kHz
LOUD = np.full(FRAME_SIZE, 16000, dtype=np.int16).tobytes()
SILENT = np.zeros(FRAME_SIZE, dtype=np.int16).tobytes()


class FakeStream:
    """Plays back a list of frames, then silence; raises ``fail_with`` on first read."""

    def __init__(self, frames=(), fail_with=None):
        self.frames = list(frames)
        self.fail_with = fail_with
        self.closed = False

    def read(self, frame_size, exception_on_overflow=True):
        if self.fail_with is not None:
            raise self.fail_with
        time.sleep(0.001)
        return self.frames.pop(0) if self.frames else SILENT

    def stop_stream(self):
        pass

    def close(self):
        self.closed = True


class FakePyAudio:

    def __init__(self):
        self.terminated = False

    def terminate(self):
        self.terminated = True


def make_recognizer(streams, recognizer):
    """Microphone recognizer whose n-th session reads ``streams[n]``."""
    mic = MicrophoneRecognizer(
        num_channels=1, sr_capture=16000, sr_target=16000, frame_ms=30,
        silence_threshold=0.01, silence_duration=0.09, min_speech_duration=0.06,
        max_listen_seconds=30, recognizer=recognizer,
    )
    opened = []

    def open_stream():
        stream = streams[min(len(opened), len(streams) - 1)]
        opened.append(stream)
        return FakePyAudio(), stream

    mic._open_stream = open_stream
    return mic, opened


def failing_recognizer(pcm, sr_hz, language):
    raise RuntimeError("credentials not found")


def test_recognizer_failure_reported_as_network_error():
    async def scenario():
        stream = FakeStream([LOUD] * 10)
        mic, _ = make_recognizer([stream], failing_recognizer)
        events = []

        await mic.start(lambda kind, payload: events.append((kind, payload)))
        assert await wait_for(lambda: events)
        assert mic.running
        await mic.stop()

        assert events[0] == (CaptureEventType.ERROR, "network")
        assert stream.closed

    asyncio.run(scenario())


def test_worker_crash_reported_and_thread_exits():
    async def scenario():
        stream = FakeStream(fail_with=ValueError("bad frame"))
        mic, _ = make_recognizer([stream], failing_recognizer)
        events = []

        await mic.start(lambda kind, payload: events.append((kind, payload)))
        assert await wait_for(lambda: events and not mic.running)

        assert events == [(CaptureEventType.ERROR, "unknown")]
        assert stream.closed

    asyncio.run(scenario())


def test_controller_restarts_after_worker_crash():
    async def scenario():
        session = InterviewSession(
            log=ConversationLog(),
            problem=InterviewProblem("Two Sum"),
            duration=60,
            time_remaining=60,
            phase=SessionPhase.ACTIVE,
        )
        streams = [FakeStream(fail_with=ValueError("bad frame")), FakeStream()]
        mic, opened = make_recognizer(streams, failing_recognizer)
        queue = asyncio.Queue()
        controller = CaptureController(mic, session, SessionTimings.immediate(), sink=queue.put_nowait)

        async def pump():
            while True:
                await controller.handle(await queue.get())

        pump_task = asyncio.create_task(pump())
        try:
            assert await controller.start()
            assert await wait_for(lambda: len(opened) == 2 and session.capture_state == CaptureState.LISTENING)
            assert mic.running
        finally:
            pump_task.cancel()
            await controller.stop()

    asyncio.run(scenario())
