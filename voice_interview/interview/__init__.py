"""Interview session components.

This module contains the business logic of a voice-driven mock coding interview:
the session orchestrator, the capture and playback controllers, the phase
scheduler, timers, and the contracts of the external services it consumes.
"""

# Core orchestrator class
from .orchestrator import InterviewSessionOrchestrator

# Data models
from .models import (
    SessionPhase, CaptureState, Speaker, UtteranceTag, Utterance,
    InterviewProblem, InterviewSession, SessionView, SessionSnapshot, TestCaseResult,
)
from .conversation import ConversationLog, TransientOutstandingError

# Structured schemas
from .schemas import Evaluation, ConversationContext, parse_evaluation

# Controllers and scheduling
from .capture import CaptureController, CaptureErrorKind, CaptureEvent
from .playback import PlaybackController
from .scheduler import Intent, PhaseScheduler, ScheduleInput
from .timers import CountdownTimer, HealthMonitor, TimerState
from .responder import InterviewResponder, InterviewerReply, heuristic_evaluation, default_evaluation

# Service contracts
from .services import (
    SpeechCaptureDevice, AIReplyService, SpeechSynthesisService, LocalSynthesizer,
    AudioOutputDevice, SessionRecorder, VertexReplyService, SynthesizedAudio,
    CaptureEventType, DeviceAlreadyStartedError,
)

# Event system
from .events import (
    InterviewEventBus, EventLogger, InterviewMetrics,
    EventType, InterviewEvent, SessionStartedEvent, PhaseChangedEvent,
    UtteranceAppendedEvent, UtteranceRemovedEvent, CaptureStateChangedEvent,
    InterimTranscriptEvent, CaptureFatalErrorEvent, PlaybackUnavailableEvent,
    ReplyDegradedEvent, SessionCompletedEvent, ErrorOccurredEvent,
)

__all__ = [
    # Orchestrator
    "InterviewSessionOrchestrator",

    # Data models
    "SessionPhase", "CaptureState", "Speaker", "UtteranceTag", "Utterance",
    "InterviewProblem", "InterviewSession", "SessionView", "SessionSnapshot",
    "TestCaseResult", "ConversationLog", "TransientOutstandingError",

    # Schemas
    "Evaluation", "ConversationContext", "parse_evaluation",

    # Controllers and scheduling
    "CaptureController", "CaptureErrorKind", "CaptureEvent", "PlaybackController",
    "Intent", "PhaseScheduler", "ScheduleInput",
    "CountdownTimer", "HealthMonitor", "TimerState",
    "InterviewResponder", "InterviewerReply", "heuristic_evaluation", "default_evaluation",

    # Services
    "SpeechCaptureDevice", "AIReplyService", "SpeechSynthesisService", "LocalSynthesizer",
    "AudioOutputDevice", "SessionRecorder", "VertexReplyService", "SynthesizedAudio",
    "CaptureEventType", "DeviceAlreadyStartedError",

    # Events
    "InterviewEventBus", "EventLogger", "InterviewMetrics",
    "EventType", "InterviewEvent", "SessionStartedEvent", "PhaseChangedEvent",
    "UtteranceAppendedEvent", "UtteranceRemovedEvent", "CaptureStateChangedEvent",
    "InterimTranscriptEvent", "CaptureFatalErrorEvent", "PlaybackUnavailableEvent",
    "ReplyDegradedEvent", "SessionCompletedEvent", "ErrorOccurredEvent",
]
