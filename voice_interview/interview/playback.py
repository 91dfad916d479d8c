"""
Playback controller: synthesizes interviewer text and plays it.

Playback and capture share one exclusive resource. Every ``speak`` call
follows the same protocol: suspend capture, play, then request a guarded
capture restart.
"""
import asyncio
import logging
import time
from typing import List, Optional

from ..config import SessionTimings
from .capture import CaptureController
from .events import InterviewEventBus, PlaybackUnavailableEvent
from .models import InterviewSession, SessionPhase
from .services import AudioOutputDevice, LocalSynthesizer, SpeechSynthesisService

logger = logging.getLogger("playback")


class PlaybackController:
    """Speaks interviewer utterances one at a time. Never raises from ``speak``."""

    def __init__(self,
                 synthesizer: Optional[SpeechSynthesisService],
                 output: Optional[AudioOutputDevice],
                 capture: CaptureController,
                 session: InterviewSession,
                 timings: SessionTimings,
                 voice: Optional[str] = None,
                 local_synthesizer: Optional[LocalSynthesizer] = None,
                 event_bus: Optional[InterviewEventBus] = None,
                 session_id: str = ""):
        self.synthesizer = synthesizer
        self.output = output
        self.capture = capture
        self.session = session
        self.timings = timings
        self.voice = voice
        self.local_synthesizer = local_synthesizer
        self.event_bus = event_bus
        self.session_id = session_id

        self._lock = asyncio.Lock()
        self._current: Optional[asyncio.Task] = None

    @property
    def is_playing(self) -> bool:
        return self._current is not None and not self._current.done()

    async def speak(self, text: str) -> bool:
        """
        Play ``text`` to completion.

        Returns:
            True if audio was produced, False if playback was unavailable
            or interrupted
        """
        async with self._lock:
            self.session.is_ai_speaking = True
            try:
                await self.capture.suspend()
                task = asyncio.get_running_loop().create_task(self._play_with_fallback(text))
                self._current = task
                try:
                    await asyncio.wait({task})
                except asyncio.CancelledError:
                    task.cancel()
                    raise
                if task.cancelled():
                    logger.info("Playback interrupted")
                    return False
                return task.result()
            except Exception as e:
                logger.error("Playback failed unexpectedly: %s", e)
                return False
            finally:
                self._current = None
                self.session.is_ai_speaking = False
                if self.session.phase == SessionPhase.ACTIVE:
                    self.capture.schedule_restart(self.timings.resume_after_playback, "playback finished")

    def _voice_attempts(self) -> List[Optional[str]]:
        # configured voice, then the neutral default
        attempts: List[Optional[str]] = [self.voice]
        if self.voice is not None:
            attempts.append(None)
        return attempts

    async def _play_with_fallback(self, text: str) -> bool:
        if self.synthesizer is not None and self.output is not None:
            for voice in self._voice_attempts():
                try:
                    audio = await self.synthesizer.synthesize(text, voice)
                    await self.output.play(audio)
                    return True
                except Exception as e:
                    logger.warning("Playback with voice %s failed: %s", voice or "default", e)

        if self.local_synthesizer is not None and self.local_synthesizer.available():
            try:
                await self.local_synthesizer.speak(text)
                return True
            except Exception as e:
                logger.warning("On-device synthesis failed: %s", e)

        logger.error("Playback unavailable, text stays in the transcript only")
        if self.event_bus is not None:
            self.event_bus.emit(PlaybackUnavailableEvent(
                self.session_id, time.time(), text, "all synthesis options failed"
            ))
        return False

    async def stop(self) -> None:
        """Interrupt the current playback, if any."""
        task = self._current
        if task is not None and not task.done():
            logger.info("Stopping playback")
            task.cancel()
        if self.output is not None:
            try:
                await self.output.stop()
            except Exception as e:
                logger.warning("Audio output failed to stop: %s", e)
