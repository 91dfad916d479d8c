"""
Speech capture controller.

Owns the lifecycle of the capture device as a small finite-state machine
with named transitions. Every device session is tagged with a generation
number; ``start``, ``stop`` and ``suspend`` bump it, and any device event
carrying an older generation is discarded.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from ..config import MIN_TRANSCRIPT_LENGTH, SessionTimings
from .events import (
    InterviewEventBus, CaptureStateChangedEvent, InterimTranscriptEvent,
    CaptureFatalErrorEvent,
)
from .models import CaptureState, InterviewSession, SessionPhase
from .services import CaptureEventType, DeviceAlreadyStartedError, SpeechCaptureDevice

logger = logging.getLogger("capture")


class CaptureErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    NO_SPEECH = "no_speech"
    NETWORK = "network"
    AUDIO_CAPTURE = "audio_capture"
    ABORTED = "aborted"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: Optional[str]) -> 'CaptureErrorKind':
        """Map a device error code to a kind; unrecognised codes are UNKNOWN."""
        codes = {
            "not-allowed": cls.PERMISSION_DENIED,
            "permission-denied": cls.PERMISSION_DENIED,
            "service-not-allowed": cls.PERMISSION_DENIED,
            "no-speech": cls.NO_SPEECH,
            "network": cls.NETWORK,
            "audio-capture": cls.AUDIO_CAPTURE,
            "aborted": cls.ABORTED,
        }
        return codes.get((code or "").strip().lower(), cls.UNKNOWN)


@dataclass(frozen=True)
class CaptureEvent:
    """A device event queued for the orchestrator, tagged with its generation."""
    kind: CaptureEventType
    generation: int
    payload: Optional[str] = None


_ALL_STATES = frozenset(CaptureState)

# name -> (allowed source states, target state)
TRANSITIONS: Dict[str, Tuple[FrozenSet[CaptureState], CaptureState]] = {
    "start": (frozenset({CaptureState.IDLE, CaptureState.ERROR, CaptureState.SUSPENDED}),
              CaptureState.LISTENING),
    "suspend": (frozenset({CaptureState.LISTENING, CaptureState.IDLE, CaptureState.ERROR}),
                CaptureState.SUSPENDED),
    "stop": (_ALL_STATES, CaptureState.IDLE),
    "end": (frozenset({CaptureState.LISTENING, CaptureState.ERROR}), CaptureState.IDLE),
    "fail": (frozenset({CaptureState.LISTENING, CaptureState.SUSPENDED, CaptureState.IDLE}),
             CaptureState.ERROR),
}


class CaptureController:
    """
    Controls the speech capture device for one interview session.

    The controller writes only ``session.capture_state`` and
    ``session.capture_error``. Accepted transcripts are handed to
    ``on_transcript``; it never touches the conversation log.
    """

    def __init__(self,
                 device: SpeechCaptureDevice,
                 session: InterviewSession,
                 timings: SessionTimings,
                 sink: Callable[[CaptureEvent], None],
                 event_bus: Optional[InterviewEventBus] = None,
                 session_id: str = ""):
        self.device = device
        self.session = session
        self.timings = timings
        self.sink = sink
        self.event_bus = event_bus
        self.session_id = session_id

        self.on_transcript: Optional[Callable[[str], None]] = None
        self.on_fatal: Optional[Callable[[CaptureErrorKind, str], None]] = None

        self.generation = 0
        self.disabled = False
        self._starting = False
        self._restart_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> CaptureState:
        return self.session.capture_state

    @property
    def is_listening(self) -> bool:
        return self.state == CaptureState.LISTENING

    @property
    def has_pending_restart(self) -> bool:
        return self._restart_task is not None and not self._restart_task.done()

    def can_listen(self) -> bool:
        """Guard evaluated whenever capture would (re)start."""
        return (not self.disabled
                and self.session.phase == SessionPhase.ACTIVE
                and not self.session.is_ai_speaking)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, name: str) -> bool:
        sources, target = TRANSITIONS[name]
        current = self.session.capture_state
        if current not in sources:
            logger.debug("Ignoring '%s' in state %s", name, current.value)
            return False
        if current != target:
            self.session.capture_state = target
            logger.info("Capture %s -> %s (%s)", current.value, target.value, name)
            self._emit(CaptureStateChangedEvent(
                self.session_id, time.time(), current.value, target.value, name
            ))
        return True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """
        Open a device session unless one is already running.

        Returns:
            True when capture is listening afterwards
        """
        if self.disabled:
            logger.debug("Capture disabled for this session, not starting")
            return False
        if not self.can_listen():
            logger.debug("Start refused: phase=%s speaking=%s",
                         self.session.phase.value, self.session.is_ai_speaking)
            return False
        if self.is_listening or self._starting:
            logger.debug("Start ignored, capture already listening")
            return True

        self.generation += 1
        generation = self.generation
        self._starting = True
        try:
            await self.device.start(partial(self._on_device_event, generation))
        except DeviceAlreadyStartedError:
            logger.info("Device already started, reopening it for generation %d", generation)
            await self._reopen(generation)
        except PermissionError as e:
            await self._fatal(CaptureErrorKind.PERMISSION_DENIED, str(e) or "Microphone permission denied")
            return False
        except Exception as e:
            logger.warning("Capture device failed to start: %s", e)
            self._transition("fail")
            self.schedule_restart(self.timings.restart_after_error, "start failed")
            return False
        finally:
            self._starting = False

        if generation != self.generation:
            # stop() or suspend() ran while the device was opening
            logger.debug("Start superseded by generation %d", self.generation)
            await self._release_device()
            return False

        self._transition("start")
        return True

    async def _reopen(self, generation: int) -> None:
        try:
            await self.device.stop()
            await self.device.start(partial(self._on_device_event, generation))
        except DeviceAlreadyStartedError:
            logger.warning("Device still running after reopen, treating it as listening")

    async def stop(self) -> None:
        """Close the device session and go Idle."""
        self.generation += 1
        self.cancel_pending_restart()
        if not self.disabled:
            self._transition("stop")
        await self._release_device()

    async def suspend(self) -> None:
        """Release the microphone for playback and wait the stop grace period."""
        self.generation += 1
        self.cancel_pending_restart()
        was_listening = self.is_listening
        # state changes before the await so Listening never overlaps playback
        if not self.disabled:
            self._transition("suspend")
        await self._release_device()
        if was_listening and self.timings.capture_stop_grace > 0:
            await asyncio.sleep(self.timings.capture_stop_grace)

    async def _release_device(self) -> None:
        try:
            await self.device.stop()
        except Exception as e:
            logger.warning("Capture device failed to stop: %s", e)

    # ------------------------------------------------------------------
    # Restarts
    # ------------------------------------------------------------------

    def schedule_restart(self, delay: float, reason: str = "") -> None:
        """Request a start after ``delay``; the guard is checked when it fires."""
        self.cancel_pending_restart()
        if self.disabled:
            return
        logger.debug("Restart scheduled in %.2fs (%s)", delay, reason)
        self._restart_task = asyncio.get_running_loop().create_task(
            self._restart_after(delay, reason)
        )

    async def _restart_after(self, delay: float, reason: str) -> None:
        await asyncio.sleep(delay)
        if not self.can_listen():
            logger.debug("Restart (%s) skipped by guard", reason)
            return
        await self.start()

    def cancel_pending_restart(self) -> None:
        task = self._restart_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._restart_task = None

    # ------------------------------------------------------------------
    # Device events
    # ------------------------------------------------------------------

    def _on_device_event(self, generation: int, kind: CaptureEventType,
                         payload: Optional[str] = None) -> None:
        self.sink(CaptureEvent(kind=kind, generation=generation, payload=payload))

    async def handle(self, event: CaptureEvent) -> None:
        """Dispatch one queued device event."""
        if event.generation != self.generation:
            logger.debug("Discarding stale %s (generation %d, current %d)",
                         event.kind.value, event.generation, self.generation)
            return

        if event.kind == CaptureEventType.FINAL_TRANSCRIPT:
            await self._handle_final(event)
        elif event.kind == CaptureEventType.INTERIM_TRANSCRIPT:
            logger.debug("Interim transcript: %s", event.payload)
            self._emit(InterimTranscriptEvent(self.session_id, time.time(), event.payload or ""))
        elif event.kind == CaptureEventType.ERROR:
            await self._handle_error(CaptureErrorKind.from_code(event.payload), event.payload)
        elif event.kind == CaptureEventType.ENDED:
            self._transition("end")
            self.schedule_restart(self.timings.restart_after_end, "ended")

    async def _handle_final(self, event: CaptureEvent) -> None:
        text = (event.payload or "").strip()
        if self.session.is_ai_speaking:
            logger.info("Discarding transcript captured during playback: %s", text)
            return

        if self.timings.transcript_settle > 0:
            await asyncio.sleep(self.timings.transcript_settle)

        if event.generation != self.generation or self.session.is_ai_speaking:
            logger.info("Discarding transcript superseded while settling: %s", text)
            return
        if len(text) < MIN_TRANSCRIPT_LENGTH:
            logger.debug("Discarding short transcript: %r", text)
            return

        logger.info("Final transcript: %s", text)
        if self.on_transcript is not None:
            self.on_transcript(text)

    async def _handle_error(self, kind: CaptureErrorKind, code: Optional[str]) -> None:
        if kind == CaptureErrorKind.PERMISSION_DENIED:
            await self._fatal(kind, "Microphone permission denied")
        elif kind == CaptureErrorKind.NO_SPEECH:
            logger.debug("No speech detected, ignoring")
        else:
            logger.warning("Capture error %s (%s), restarting", kind.value, code)
            self._transition("fail")
            self.schedule_restart(self.timings.restart_after_error, kind.value)

    async def _fatal(self, kind: CaptureErrorKind, message: str) -> None:
        if self.disabled:
            return
        logger.error("Fatal capture error: %s", message)
        self.disabled = True
        self.generation += 1
        self.cancel_pending_restart()
        self._transition("fail")
        await self._release_device()
        self.session.capture_error = message
        self._emit(CaptureFatalErrorEvent(self.session_id, time.time(), kind.value, message))
        if self.on_fatal is not None:
            self.on_fatal(kind, message)

    def _emit(self, event) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(event)
