"""
Event-driven architecture for the interview session.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of interview events."""
    SESSION_STARTED = "session_started"
    PHASE_CHANGED = "phase_changed"
    UTTERANCE_APPENDED = "utterance_appended"
    UTTERANCE_REMOVED = "utterance_removed"
    CAPTURE_STATE_CHANGED = "capture_state_changed"
    INTERIM_TRANSCRIPT = "interim_transcript"
    CAPTURE_FATAL_ERROR = "capture_fatal_error"
    PLAYBACK_UNAVAILABLE = "playback_unavailable"
    REPLY_DEGRADED = "reply_degraded"
    SESSION_COMPLETED = "session_completed"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class InterviewEvent(ABC):
    """Base class for all interview events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class SessionStartedEvent(InterviewEvent):
    """Event fired when the interview begins."""
    def __init__(self, session_id: str, timestamp: float, problem_title: str, duration: int):
        super().__init__(
            event_type=EventType.SESSION_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"problem_title": problem_title, "duration": duration}
        )


@dataclass
class PhaseChangedEvent(InterviewEvent):
    def __init__(self, session_id: str, timestamp: float, old_phase: str, new_phase: str):
        super().__init__(
            event_type=EventType.PHASE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"old_phase": old_phase, "new_phase": new_phase}
        )


@dataclass
class UtteranceAppendedEvent(InterviewEvent):
    """Event fired for every utterance added to the conversation log."""
    def __init__(self, session_id: str, timestamp: float, speaker: str,
                 content: str, tags: List[str], round_count: int):
        super().__init__(
            event_type=EventType.UTTERANCE_APPENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "speaker": speaker,
                "content": content,
                "tags": tags,
                "round_count": round_count
            }
        )


@dataclass
class UtteranceRemovedEvent(InterviewEvent):
    """Event fired when a placeholder is removed."""
    def __init__(self, session_id: str, timestamp: float, content: str):
        super().__init__(
            event_type=EventType.UTTERANCE_REMOVED,
            session_id=session_id,
            timestamp=timestamp,
            data={"content": content}
        )


@dataclass
class CaptureStateChangedEvent(InterviewEvent):
    def __init__(self, session_id: str, timestamp: float, old_state: str,
                 new_state: str, transition: str):
        super().__init__(
            event_type=EventType.CAPTURE_STATE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "old_state": old_state,
                "new_state": new_state,
                "transition": transition
            }
        )


@dataclass
class InterimTranscriptEvent(InterviewEvent):
    """Advisory partial transcript; never drives state."""
    def __init__(self, session_id: str, timestamp: float, text: str):
        super().__init__(
            event_type=EventType.INTERIM_TRANSCRIPT,
            session_id=session_id,
            timestamp=timestamp,
            data={"text": text}
        )


@dataclass
class CaptureFatalErrorEvent(InterviewEvent):
    """Event fired once when capture is disabled for the session."""
    def __init__(self, session_id: str, timestamp: float, error_kind: str, message: str):
        super().__init__(
            event_type=EventType.CAPTURE_FATAL_ERROR,
            session_id=session_id,
            timestamp=timestamp,
            data={"error_kind": error_kind, "message": message}
        )


@dataclass
class PlaybackUnavailableEvent(InterviewEvent):
    """Event fired when no audio could be produced for an utterance."""
    def __init__(self, session_id: str, timestamp: float, text: str, reason: str):
        super().__init__(
            event_type=EventType.PLAYBACK_UNAVAILABLE,
            session_id=session_id,
            timestamp=timestamp,
            data={"text": text, "reason": reason}
        )


@dataclass
class ReplyDegradedEvent(InterviewEvent):
    """Event fired when a canned reply or heuristic score replaced the AI answer."""
    def __init__(self, session_id: str, timestamp: float, intent: str, fallback: str):
        super().__init__(
            event_type=EventType.REPLY_DEGRADED,
            session_id=session_id,
            timestamp=timestamp,
            data={"intent": intent, "fallback": fallback}
        )


@dataclass
class SessionCompletedEvent(InterviewEvent):
    """Event fired when the session reaches Completed."""
    def __init__(self, session_id: str, timestamp: float, reason: str, round_count: int,
                 duration_used: int, total_score: Optional[float]):
        super().__init__(
            event_type=EventType.SESSION_COMPLETED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "reason": reason,
                "round_count": round_count,
                "duration_used": duration_used,
                "total_score": total_score
            }
        )


@dataclass
class ErrorOccurredEvent(InterviewEvent):
    """Event fired when an error occurs."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[InterviewEvent], None]


class InterviewEventBus:
    """Event bus for interview session communication."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: InterviewEvent) -> None:
        """
        Emit an event to all subscribers.

        Handler exceptions are logged and never reach the emitter.
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: InterviewEvent) -> None:
        """Log event details."""
        self.logger.info(f"Event: {event.event_type.value} | Session: {event.session_id} | Data: {event.data}")


class InterviewMetrics:
    """Collects metrics from interview events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: InterviewEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.SESSION_STARTED:
            self.sessions_started += 1
        elif event.event_type == EventType.SESSION_COMPLETED:
            self.sessions_completed += 1
            if event.data.get("reason") == "time_expired":
                self.sessions_timed_out += 1
        elif event.event_type == EventType.UTTERANCE_APPENDED:
            if event.data.get("speaker") == "candidate":
                self.candidate_turns += 1
            else:
                self.interviewer_turns += 1
        elif event.event_type == EventType.REPLY_DEGRADED:
            self.degraded_replies += 1
        elif event.event_type == EventType.PLAYBACK_UNAVAILABLE:
            self.playback_failures += 1
        elif event.event_type == EventType.CAPTURE_FATAL_ERROR:
            self.capture_fatal_errors += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "sessions_started": self.sessions_started,
            "sessions_completed": self.sessions_completed,
            "sessions_timed_out": self.sessions_timed_out,
            "candidate_turns": self.candidate_turns,
            "interviewer_turns": self.interviewer_turns,
            "degraded_replies": self.degraded_replies,
            "playback_failures": self.playback_failures,
            "capture_fatal_errors": self.capture_fatal_errors,
            "errors_occurred": self.errors_occurred
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.sessions_started = 0
        self.sessions_completed = 0
        self.sessions_timed_out = 0
        self.candidate_turns = 0
        self.interviewer_turns = 0
        self.degraded_replies = 0
        self.playback_failures = 0
        self.capture_fatal_errors = 0
        self.errors_occurred = 0
