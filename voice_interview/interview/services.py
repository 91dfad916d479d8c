"""
Service contracts for the interview session and the Vertex-backed reply service.

The orchestrator only talks to these abstractions. Concrete adapters live in
``voice_interview.infrastructure`` and the in-memory fakes in ``testing.py``.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .models import SessionSnapshot, TestCaseResult
from .prompts import InterviewPrompts
from .schemas import ConversationContext, Evaluation
from ..config import REPLY_TEMPERATURE

logger = logging.getLogger("services")


class CaptureEventType(str, Enum):
    """Events a speech capture device reports."""
    FINAL_TRANSCRIPT = "final_transcript"
    INTERIM_TRANSCRIPT = "interim_transcript"
    ERROR = "error"
    ENDED = "ended"


# listener(event_type, payload); payload is the transcript or the error code
CaptureListener = Callable[[CaptureEventType, Optional[str]], None]


class DeviceAlreadyStartedError(RuntimeError):
    """Raised by a capture device asked to start while a session is running."""


@dataclass
class SynthesizedAudio:
    """Audio returned by a speech synthesis service: a WAV file or raw 16-bit mono PCM."""
    data: bytes
    sample_rate: int
    voice: Optional[str] = None

    @property
    def is_wav(self) -> bool:
        return self.data[:4] == b"RIFF"


class SpeechCaptureDevice(ABC):
    """A microphone plus recognizer producing transcript events."""

    @abstractmethod
    async def start(self, listener: CaptureListener) -> None:
        """Open a capture session. Raises DeviceAlreadyStartedError if one is running."""

    @abstractmethod
    async def stop(self) -> None:
        """Close the current capture session, if any."""


class AIReplyService(ABC):
    """Produces interviewer text and the final evaluation."""

    @abstractmethod
    async def generate_reply(self, context: ConversationContext) -> str:
        ...

    @abstractmethod
    async def generate_evaluation(self,
                                  context: ConversationContext,
                                  code: Optional[str],
                                  test_results: List[TestCaseResult]
                                  ) -> Union[Evaluation, Dict[str, Any], str]:
        ...


class SpeechSynthesisService(ABC):

    @abstractmethod
    async def synthesize(self, text: str, voice: Optional[str]) -> SynthesizedAudio:
        """Synthesize text; ``voice=None`` selects the neutral default voice."""


class LocalSynthesizer(ABC):
    """On-device synthesis that speaks directly, used as the last fallback."""

    @abstractmethod
    def available(self) -> bool:
        ...

    @abstractmethod
    async def speak(self, text: str) -> None:
        ...


class AudioOutputDevice(ABC):

    @abstractmethod
    async def play(self, audio: SynthesizedAudio) -> None:
        """Play audio to completion. Raises on device failure."""

    @abstractmethod
    async def stop(self) -> None:
        """Interrupt the current playback."""


class SessionRecorder(ABC):

    @abstractmethod
    async def save(self, snapshot: SessionSnapshot) -> Any:
        ...


class VertexReplyService(AIReplyService):
    """AI reply service backed by the Vertex AI REST client."""

    def __init__(self, llm_client, temperature: float = REPLY_TEMPERATURE):
        self.llm_client = llm_client
        self.temperature = temperature

    async def generate_reply(self, context: ConversationContext) -> str:
        prompt = InterviewPrompts.reply_prompt(context)
        logger.debug("Requesting %s reply (%d chars of prompt)", context.intent.value, len(prompt))
        text = await asyncio.to_thread(
            self.llm_client.generate_content, prompt, temperature=self.temperature
        )
        logger.info("LLM reply: %s", text)
        return text

    async def generate_evaluation(self,
                                  context: ConversationContext,
                                  code: Optional[str],
                                  test_results: List[TestCaseResult]) -> Dict[str, Any]:
        context.code = code
        context.test_results = list(test_results)
        prompt = InterviewPrompts.final_evaluation_prompt(context)
        return await asyncio.to_thread(self.llm_client.generate_json, prompt)
