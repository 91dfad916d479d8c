"""Infrastructure components for the interview session.

This module contains the concrete adapters behind the service contracts
of the interview package: microphone capture, speech services, audio
playback, the LLM client and session record storage.
"""

# Audio infrastructure
from .audio import (
    GoogleSpeechSynthesizer, EspeakSynthesizer, SubprocessAudioOutput, recognize_google_sync
)

# LLM infrastructure
from .llm import VertexRestClient

# Session records
from .data import JsonSessionRecorder

__all__ = [
    # Speech services
    "GoogleSpeechSynthesizer", "EspeakSynthesizer", "recognize_google_sync",

    # Playback
    "SubprocessAudioOutput",

    # LLM client
    "VertexRestClient",

    # Records
    "JsonSessionRecorder",
]
