"""
Testing infrastructure with mock services for the interview session.
"""
import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Set

from ..config import SessionTimings
from .models import (
    CaptureState, InterviewProblem, SessionSnapshot, SessionView, TestCaseResult,
)
from .schemas import ConversationContext
from .services import (
    AIReplyService, AudioOutputDevice, CaptureEventType, CaptureListener,
    DeviceAlreadyStartedError, LocalSynthesizer, SessionRecorder,
    SpeechCaptureDevice, SpeechSynthesisService, SynthesizedAudio,
)


class MockCaptureDevice(SpeechCaptureDevice):
    """
    Mock capture device for testing.

    Keeps the last listener after ``stop`` so tests can deliver late
    events from an ended device session.
    """

    def __init__(self):
        self.listener: Optional[CaptureListener] = None
        self.active = False
        self.start_calls = 0
        self.stop_calls = 0
        self.sessions_opened = 0
        self.start_errors: List[BaseException] = []
        self.is_speaking: Optional[Callable[[], bool]] = None
        self.violations: List[str] = []

    async def start(self, listener: CaptureListener) -> None:
        self.start_calls += 1
        if self.start_errors:
            raise self.start_errors.pop(0)
        if self.active:
            raise DeviceAlreadyStartedError("recognition has already started")
        if self.is_speaking is not None and self.is_speaking():
            self.violations.append("capture started while the interviewer was speaking")
        self.active = True
        self.listener = listener
        self.sessions_opened += 1

    async def stop(self) -> None:
        self.stop_calls += 1
        self.active = False

    def emit_final(self, text: str) -> None:
        self._emit(CaptureEventType.FINAL_TRANSCRIPT, text)

    def emit_interim(self, text: str) -> None:
        self._emit(CaptureEventType.INTERIM_TRANSCRIPT, text)

    def emit_error(self, code: str) -> None:
        self._emit(CaptureEventType.ERROR, code)

    def emit_ended(self) -> None:
        self.active = False
        self._emit(CaptureEventType.ENDED, None)

    def _emit(self, kind: CaptureEventType, payload: Optional[str]) -> None:
        if self.listener is not None:
            self.listener(kind, payload)


class MockReplyService(AIReplyService):
    """Mock AI reply service for testing."""

    def __init__(self,
                 mock_replies: Optional[List[str]] = None,
                 mock_evaluation: Any = None,
                 fail: bool = False,
                 fail_evaluation: bool = False,
                 delay: float = 0.0):
        self.mock_replies = list(mock_replies or [])
        self.mock_evaluation = mock_evaluation
        self.fail = fail
        self.fail_evaluation = fail_evaluation
        self.delay = delay
        self.contexts: List[ConversationContext] = []
        self.evaluation_requests = 0

    async def generate_reply(self, context: ConversationContext) -> str:
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("AI reply service unavailable")
        if self.mock_replies:
            return self.mock_replies.pop(0)
        return f"Interviewer: question {len(self.contexts)} about {context.intent.value}?"

    async def generate_evaluation(self, context, code, test_results):
        self.contexts.append(context)
        self.evaluation_requests += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_evaluation:
            raise RuntimeError("AI evaluation service unavailable")
        if self.mock_evaluation is not None:
            return self.mock_evaluation
        return json.dumps(mock_evaluation_payload())


class MockLLMClient:
    """Mock Vertex client for testing the reply service without network."""

    def __init__(self, mock_responses: List[str]):
        self.mock_responses = mock_responses
        self.current_response_idx = 0
        self.request_history = []

    def generate_content(self, prompt: str, temperature: float = 0.0, **kwargs) -> str:
        self.request_history.append({
            "prompt": prompt,
            "temperature": temperature,
            "kwargs": kwargs
        })
        if self.current_response_idx < len(self.mock_responses):
            response = self.mock_responses[self.current_response_idx]
            self.current_response_idx += 1
            return response
        return "Can you tell me more about your approach?"

    def generate_json(self, prompt: str) -> Dict[str, Any]:
        text = self.generate_content(prompt)
        return json.loads(text)


class MockSynthesizer(SpeechSynthesisService):
    """Mock synthesis service; voices in ``fail_voices`` raise."""

    def __init__(self, fail_voices: Optional[Set[Optional[str]]] = None, fail_all: bool = False):
        self.fail_voices = set(fail_voices or ())
        self.fail_all = fail_all
        self.requests: List[Optional[str]] = []

    async def synthesize(self, text: str, voice: Optional[str]) -> SynthesizedAudio:
        self.requests.append(voice)
        if self.fail_all or voice in self.fail_voices:
            raise RuntimeError(f"synthesis failed for voice {voice}")
        return SynthesizedAudio(data=b"\x00\x00" * 160, sample_rate=16000, voice=voice)


class MockAudioOutput(AudioOutputDevice):
    """
    Mock audio output that records plays and checks the microphone is closed.
    """

    def __init__(self, play_duration: float = 0.0, fail: bool = False,
                 capture_device: Optional[MockCaptureDevice] = None):
        self.play_duration = play_duration
        self.fail = fail
        self.capture_device = capture_device
        self.session = None
        self.played: List[SynthesizedAudio] = []
        self.stop_calls = 0
        self.violations: List[str] = []

    async def play(self, audio: SynthesizedAudio) -> None:
        if self.fail:
            raise RuntimeError("audio output unavailable")
        if self.capture_device is not None and self.capture_device.active:
            self.violations.append("played while the microphone was open")
        if self.session is not None and self.session.capture_state == CaptureState.LISTENING:
            self.violations.append("played while capture was listening")
        self.played.append(audio)
        if self.play_duration:
            await asyncio.sleep(self.play_duration)

    async def stop(self) -> None:
        self.stop_calls += 1


class MockLocalSynthesizer(LocalSynthesizer):
    """Mock on-device synthesizer."""

    def __init__(self, is_available: bool = True, fail: bool = False):
        self.is_available = is_available
        self.fail = fail
        self.spoken: List[str] = []

    def available(self) -> bool:
        return self.is_available

    async def speak(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("espeak failed")
        self.spoken.append(text)


class MockRecorder(SessionRecorder):
    """Collects saved snapshots in memory."""

    def __init__(self):
        self.snapshots: List[SessionSnapshot] = []

    async def save(self, snapshot: SessionSnapshot) -> None:
        self.snapshots.append(snapshot)


def mock_evaluation_payload() -> Dict[str, Any]:
    """Evaluation JSON the way the AI service returns it."""
    return {
        "correctness": 8,
        "efficiency": 7,
        "quality": 8,
        "communication": 9,
        "problemSolving": 8,
        "totalScore": 8.0,
        "grade": "good",
        "summary": "Clear reasoning and a correct hash map solution.",
        "strengths": ["Explained the trade-offs"],
        "improvements": ["Discuss edge cases earlier"],
        "recommendation": "Proceed to the next round."
    }


def create_test_results(passed: int, failed: int = 0) -> List[TestCaseResult]:
    """Test case results with the given pass/fail counts."""
    results = [TestCaseResult(passed=True, input=f"case {i}") for i in range(passed)]
    results += [TestCaseResult(passed=False, input=f"case {passed + i}") for i in range(failed)]
    return results


def create_mock_session_setup(**overrides) -> Dict[str, Any]:
    """Create a complete mock session setup for testing."""
    capture_device = MockCaptureDevice()
    setup = {
        "capture_device": capture_device,
        "reply_service": MockReplyService(),
        "synthesizer": MockSynthesizer(),
        "audio_output": MockAudioOutput(capture_device=capture_device),
        "local_synthesizer": MockLocalSynthesizer(is_available=False),
        "recorder": MockRecorder(),
        "problem": InterviewProblem("Two Sum", "Return indices of the two numbers adding up to target."),
        "duration": 600,
        "timings": SessionTimings.immediate(),
        "scheduler": None,
    }
    setup.update(overrides)
    return setup


def build_mock_orchestrator(**overrides):
    """
    Build an orchestrator wired to mocks.

    Returns:
        Tuple of (orchestrator, setup dict)
    """
    from .orchestrator import InterviewSessionOrchestrator

    setup = create_mock_session_setup(**overrides)
    orchestrator = InterviewSessionOrchestrator(
        capture_device=setup["capture_device"],
        reply_service=setup["reply_service"],
        synthesizer=setup["synthesizer"],
        audio_output=setup["audio_output"],
        local_synthesizer=setup["local_synthesizer"],
        recorder=setup["recorder"],
        problem=setup["problem"],
        duration=setup["duration"],
        timings=setup["timings"],
        scheduler=setup["scheduler"],
        voice="en-US-Neural2-F",
    )

    device = setup["capture_device"]
    if isinstance(device, MockCaptureDevice):
        device.is_speaking = lambda: orchestrator.session.is_ai_speaking
    output = setup["audio_output"]
    if isinstance(output, MockAudioOutput):
        output.session = orchestrator.session

    checker = SessionInvariantChecker(orchestrator)
    orchestrator.event_bus.subscribe_all(checker.handle_event)
    setup["checker"] = checker
    return orchestrator, setup


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005) -> bool:
    """Poll ``predicate`` on the running loop until it holds or ``timeout`` passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(interval)
    return True


class SessionInvariantChecker:
    """Checks session invariants after every emitted event."""

    def __init__(self, orchestrator):
        self.orchestrator = orchestrator
        self.violations: List[str] = []

    @staticmethod
    def validate_view(view: SessionView) -> List[str]:
        """
        Validate a session view and return list of issues found.

        Returns:
            List of invariant violations (empty if valid)
        """
        issues = []
        if view.is_ai_speaking and view.capture_state == CaptureState.LISTENING:
            issues.append("capture listening while interviewer speaking")
        transients = [u for u in view.utterances if u.is_transient]
        if len(transients) > 1:
            issues.append(f"{len(transients)} placeholders outstanding")
        if not 0 <= view.time_remaining <= view.duration:
            issues.append(f"time remaining out of range: {view.time_remaining}")
        return issues

    def handle_event(self, event) -> None:
        for issue in self.validate_view(self.orchestrator.view):
            self.violations.append(f"{event.event_type.value}: {issue}")

    def assert_clean(self) -> None:
        if self.violations:
            raise AssertionError(f"Invariant violations: {'; '.join(self.violations)}")
