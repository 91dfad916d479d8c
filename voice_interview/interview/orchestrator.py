"""
Interview session orchestrator: the only component with public commands.
"""
import asyncio
import logging
import time
from datetime import datetime
from random import Random
from typing import Dict, Iterable, Optional, Set

from ..config import (
    CODE_LANGUAGE, HISTORY_UTTERANCES, INTERVIEW_DURATION_SECONDS, PROBLEM_DESCRIPTION,
    PROBLEM_TITLE, TTS_VOICE, SessionTimings,
)
from .capture import CaptureController, CaptureErrorKind, CaptureEvent
from .conversation import ConversationLog
from .events import (
    InterviewEventBus, EventLogger, InterviewMetrics,
    SessionStartedEvent, PhaseChangedEvent, UtteranceAppendedEvent, UtteranceRemovedEvent,
    ReplyDegradedEvent, SessionCompletedEvent, ErrorOccurredEvent,
)
from .models import (
    InterviewProblem, InterviewSession, SessionPhase, SessionSnapshot, SessionView,
    TestCaseResult, Utterance, UtteranceTag,
)
from .playback import PlaybackController
from .prompts import InterviewPrompts
from .responder import InterviewResponder
from .scheduler import Intent, PhaseScheduler, ScheduleInput
from .schemas import ConversationContext, Evaluation
from .services import (
    AIReplyService, AudioOutputDevice, LocalSynthesizer, SessionRecorder,
    SpeechCaptureDevice, SpeechSynthesisService,
)
from .timers import CountdownTimer, HealthMonitor

logger = logging.getLogger("orchestrator")


ALLOWED_PHASES = {
    SessionPhase.PREPARATION: {SessionPhase.ACTIVE, SessionPhase.COMPLETED},
    SessionPhase.ACTIVE: {SessionPhase.PAUSED, SessionPhase.COMPLETED},
    SessionPhase.PAUSED: {SessionPhase.ACTIVE, SessionPhase.COMPLETED},
    SessionPhase.COMPLETED: set(),
}

# Intents whose replies are withheld during coding unless the candidate asks for one
_SUPPRESSIBLE_WHILE_CODING = {Intent.PROBING, Intent.CODING_SUPPORT}


class InterviewSessionOrchestrator:
    """
    Runs one timed voice interview.

    Composes the capture and playback controllers, the phase scheduler,
    the countdown timer and the health monitor around a single
    InterviewSession. Public commands never raise; they return True when
    the command took effect.
    """

    def __init__(self,
                 capture_device: SpeechCaptureDevice,
                 reply_service: Optional[AIReplyService],
                 synthesizer: Optional[SpeechSynthesisService] = None,
                 audio_output: Optional[AudioOutputDevice] = None,
                 local_synthesizer: Optional[LocalSynthesizer] = None,
                 recorder: Optional[SessionRecorder] = None,
                 problem: Optional[InterviewProblem] = None,
                 duration: int = INTERVIEW_DURATION_SECONDS,
                 language: str = CODE_LANGUAGE,
                 voice: Optional[str] = TTS_VOICE,
                 timings: Optional[SessionTimings] = None,
                 scheduler: Optional[PhaseScheduler] = None,
                 event_bus: Optional[InterviewEventBus] = None,
                 session_id: Optional[str] = None,
                 rng: Optional[Random] = None):

        self.session_id = session_id or f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.timings = timings or SessionTimings()
        self.recorder = recorder

        self.session = InterviewSession(
            log=ConversationLog(),
            problem=problem or InterviewProblem(PROBLEM_TITLE, PROBLEM_DESCRIPTION),
            duration=duration,
            time_remaining=duration,
            language=language,
        )

        # Initialize event system
        self.event_bus = event_bus or InterviewEventBus()
        self.event_logger = EventLogger()
        self.metrics = InterviewMetrics()
        self.event_bus.subscribe_all(self.event_logger.handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        # Device events are drained by a single pump task
        self._events: asyncio.Queue = asyncio.Queue()

        self.capture = CaptureController(
            capture_device, self.session, self.timings,
            sink=self._events.put_nowait,
            event_bus=self.event_bus,
            session_id=self.session_id,
        )
        self.capture.on_transcript = self._on_transcript
        self.capture.on_fatal = self._on_capture_fatal

        self.playback = PlaybackController(
            synthesizer, audio_output, self.capture, self.session, self.timings,
            voice=voice,
            local_synthesizer=local_synthesizer,
            event_bus=self.event_bus,
            session_id=self.session_id,
        )

        self.scheduler = scheduler or PhaseScheduler()
        self.responder = InterviewResponder(reply_service, rng)
        self.timer = CountdownTimer(self.session, self._on_timer_expired, tick=self.timings.tick)
        self.monitor = HealthMonitor(self.capture, self.session, self.timings.health_check_interval)

        self._turn_lock = asyncio.Lock()
        self._pump_task: Optional[asyncio.Task] = None
        self._turn_tasks: Set[asyncio.Task] = set()
        self._completed = asyncio.Event()
        # evaluation being presented; recorded even if the session ends mid-presentation
        self._pending_evaluation: Optional[Evaluation] = None

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @property
    def view(self) -> SessionView:
        return SessionView.of(self.session)

    @property
    def phase(self) -> SessionPhase:
        return self.session.phase

    def snapshot(self) -> SessionSnapshot:
        """State an external recorder needs to store the interview."""
        return SessionSnapshot(
            transcript=self.session.log.transcript(),
            duration_used=self.session.duration_used,
            evaluation=self.session.evaluation,
            submitted_code=self.session.submitted_code,
            language=self.session.language,
            problem_title=self.session.problem.title,
            completion_reason=self.session.completion_reason,
            test_results=list(self.session.test_results),
            started_at=self.session.started_at,
        )

    async def wait_until_completed(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._completed.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def get_metrics(self) -> Dict[str, int]:
        return self.metrics.get_metrics()

    # ------------------------------------------------------------------
    # Public commands
    # ------------------------------------------------------------------

    async def start_interview(self) -> bool:
        """Preparation -> Active, then ask and play the opening question."""
        if self.session.phase != SessionPhase.PREPARATION:
            logger.warning("start_interview ignored in phase %s", self.session.phase.value)
            return False

        try:
            self._set_phase(SessionPhase.ACTIVE)
            self.session.started_at = time.time()
            self.event_bus.emit(SessionStartedEvent(
                self.session_id, self.session.started_at,
                self.session.problem.title, self.session.duration
            ))
            logger.info("Interview started: %s (%ds)", self.session.problem.title, self.session.duration)

            self._pump_task = asyncio.get_running_loop().create_task(self._pump_events())
            self.timer.start()
            self.monitor.start()
            await self.capture.start()

            async with self._turn_lock:
                intent = self.scheduler.next_intent(ScheduleInput.from_log(self.session.log))
                await self._respond(intent)
            return True
        except Exception as e:
            self._report_error("start_interview", e)
            return False

    async def pause_resume(self) -> bool:
        """Toggle Active and Paused."""
        try:
            if self.session.phase == SessionPhase.ACTIVE:
                self._set_phase(SessionPhase.PAUSED)
                self.timer.stop()
                self.monitor.stop()
                self.capture.cancel_pending_restart()
                await self.capture.stop()
                logger.info("Interview paused with %ds remaining", self.session.time_remaining)
                return True

            if self.session.phase == SessionPhase.PAUSED:
                self._set_phase(SessionPhase.ACTIVE)
                self.timer.start()
                self.monitor.start()
                await self.capture.start()
                logger.info("Interview resumed")
                return True
        except Exception as e:
            self._report_error("pause_resume", e)
            return False

        logger.warning("pause_resume ignored in phase %s", self.session.phase.value)
        return False

    async def end_interview(self, reason: str = "ended_by_user") -> bool:
        """Complete the session from any non-terminal phase."""
        try:
            return await self._complete(reason)
        except Exception as e:
            self._report_error("end_interview", e)
            return False

    async def submit_spoken_turn(self, transcript: str) -> bool:
        """
        Record a candidate utterance and answer it.

        Returns:
            True if the utterance was recorded
        """
        text = (transcript or "").strip()
        if not text:
            return False
        if self.session.phase != SessionPhase.ACTIVE:
            logger.info("Spoken turn ignored in phase %s", self.session.phase.value)
            return False

        try:
            async with self._turn_lock:
                if self.session.phase != SessionPhase.ACTIVE:
                    return False

                self._remove_transient()
                self._append(Utterance.candidate(text))

                state = ScheduleInput.from_log(self.session.log)
                intent = self.scheduler.next_intent(state)
                logger.info("Round %d -> %s", state.round_count, intent.value)

                if self._suppressed_while_coding(intent, text):
                    logger.info("Candidate is coding, no reply to: %s", text)
                    return True

                await self._respond(intent, text)
                return True
        except Exception as e:
            self._report_error("submit_spoken_turn", e)
            return False

    async def submit_code_turn(self, code: str, test_results: Optional[Iterable[TestCaseResult]] = None) -> bool:
        """Store a code submission and ask exactly one question about it."""
        if self.session.phase != SessionPhase.ACTIVE:
            logger.info("Code turn ignored in phase %s", self.session.phase.value)
            return False

        try:
            async with self._turn_lock:
                if self.session.phase != SessionPhase.ACTIVE:
                    return False
                self.session.submitted_code = code
                self.session.test_results = list(test_results or [])
                logger.info("Code submitted (%d chars, %d tests)", len(code or ""), len(self.session.test_results))

                self._remove_transient()
                await self._respond(Intent.CODE_REVIEW)
                return True
        except Exception as e:
            self._report_error("submit_code_turn", e)
            return False

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------

    def _suppressed_while_coding(self, intent: Intent, text: str) -> bool:
        return (self.session.log.has_coding_started
                and intent in _SUPPRESSIBLE_WHILE_CODING
                and not self.scheduler.should_respond_while_coding(text))

    def _context(self, intent: Intent, latest_input: str = "") -> ConversationContext:
        return ConversationContext(
            intent=intent,
            problem=self.session.problem,
            history=self.session.log.recent(HISTORY_UTTERANCES),
            latest_input=latest_input,
            round_count=self.session.round_count,
            language=self.session.language,
            code=self.session.submitted_code,
            test_results=list(self.session.test_results),
        )

    async def _respond(self, intent: Intent, latest_input: str = "") -> bool:
        """Placeholder, reply, real utterance, playback. Caller holds the turn lock."""
        context = self._context(intent, latest_input)

        self._append(Utterance.transient(InterviewPrompts.thinking_placeholder(intent)))
        try:
            if intent == Intent.FINAL_EVALUATION:
                evaluation = await self.responder.evaluate(context)
                reply = None
            else:
                reply = await self.responder.reply(context)
        finally:
            self._remove_transient()

        if self.session.phase == SessionPhase.COMPLETED:
            logger.info("Session completed while waiting, dropping %s reply", intent.value)
            return False

        if reply is None:
            return await self._present_evaluation(evaluation)

        tags = list(self.scheduler.tags_for(intent))
        if reply.degraded:
            tags.append(UtteranceTag.ERROR)
            self.event_bus.emit(ReplyDegradedEvent(self.session_id, time.time(), intent.value, "canned"))
        self._append(Utterance.interviewer(reply.text, *tags))
        await self.playback.speak(reply.text)
        return True

    async def _present_evaluation(self, evaluation: Evaluation) -> bool:
        if evaluation.source != "ai":
            self.event_bus.emit(ReplyDegradedEvent(
                self.session_id, time.time(), Intent.FINAL_EVALUATION.value, "heuristic"
            ))

        self._pending_evaluation = evaluation
        text = evaluation.presentation()
        self._append(Utterance.interviewer(text, UtteranceTag.FINAL_EVALUATION))
        await self.playback.speak(text)

        if self.timings.completion_delay > 0:
            await asyncio.sleep(self.timings.completion_delay)
        await self._complete("final_evaluation", evaluation)
        return True

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def _set_phase(self, new_phase: SessionPhase) -> bool:
        old_phase = self.session.phase
        if new_phase not in ALLOWED_PHASES[old_phase]:
            logger.warning("Invalid phase transition %s -> %s", old_phase.value, new_phase.value)
            return False
        self.session.phase = new_phase
        self.event_bus.emit(PhaseChangedEvent(self.session_id, time.time(), old_phase.value, new_phase.value))
        return True

    async def _complete(self, reason: str, evaluation: Optional[Evaluation] = None) -> bool:
        if not self._set_phase(SessionPhase.COMPLETED):
            return False

        logger.info("Interview completed: %s", reason)
        self.session.completion_reason = reason
        evaluation = evaluation or self._pending_evaluation
        if evaluation is not None:
            self.session.evaluation = evaluation

        self.timer.stop()
        self.monitor.stop()
        self.capture.cancel_pending_restart()
        await self.capture.stop()
        await self.playback.stop()
        self._stop_pump()
        self._cancel_turns()
        self._remove_transient()

        self.event_bus.emit(SessionCompletedEvent(
            self.session_id, time.time(), reason, self.session.round_count,
            self.session.duration_used,
            self.session.evaluation.total_score if self.session.evaluation else None,
        ))
        await self._save_snapshot()
        self._completed.set()
        return True

    async def _save_snapshot(self) -> None:
        if self.recorder is None:
            return
        try:
            await self.recorder.save(self.snapshot())
        except Exception as e:
            logger.error("Failed to save session record: %s", e)
            self._emit_error("recorder", e)

    def _stop_pump(self) -> None:
        task, self._pump_task = self._pump_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _cancel_turns(self) -> None:
        current = asyncio.current_task()
        for task in list(self._turn_tasks):
            if task is not current and not task.done():
                task.cancel()

    # ------------------------------------------------------------------
    # Log mutation
    # ------------------------------------------------------------------

    def _append(self, utterance: Utterance) -> None:
        self.session.log.append(utterance)
        self.event_bus.emit(UtteranceAppendedEvent(
            self.session_id, utterance.timestamp, utterance.speaker.value, utterance.content,
            sorted(tag.value for tag in utterance.tags), self.session.round_count
        ))

    def _remove_transient(self) -> None:
        placeholder = self.session.log.remove_transient()
        if placeholder is not None:
            self.event_bus.emit(UtteranceRemovedEvent(self.session_id, time.time(), placeholder.content))

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    async def _pump_events(self) -> None:
        while True:
            event: CaptureEvent = await self._events.get()
            try:
                await self.capture.handle(event)
            except Exception as e:
                logger.error("Failed to handle capture event %s: %s", event.kind.value, e)
                self._emit_error("capture", e)

    def _on_transcript(self, text: str) -> None:
        task = asyncio.get_running_loop().create_task(self.submit_spoken_turn(text))
        self._turn_tasks.add(task)
        task.add_done_callback(self._turn_tasks.discard)

    def _on_capture_fatal(self, kind: CaptureErrorKind, message: str) -> None:
        logger.error("Voice capture disabled (%s): %s", kind.value, message)
        self.monitor.stop()

    async def _on_timer_expired(self) -> None:
        await self.end_interview(reason="time_expired")

    def _report_error(self, component: str, error: Exception) -> None:
        logger.exception("%s failed: %s", component, error)
        self._emit_error(component, error)

    def _emit_error(self, component: str, error: Exception) -> None:
        self.event_bus.emit(ErrorOccurredEvent(
            self.session_id, time.time(), type(error).__name__, str(error), component
        ))
