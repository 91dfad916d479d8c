"""
Speech-to-text functionality using Google Cloud Speech.
"""
import logging
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import speech

from ....config import LANGUAGE_CODE

logger = logging.getLogger("speech_stt")


class SpeechRecognitionError(RuntimeError):
    """Raised when the recognition request itself failed."""


_client: Optional[speech.SpeechClient] = None


def _get_client() -> speech.SpeechClient:
    global _client
    if _client is None:
        _client = speech.SpeechClient()
    return _client


def recognize_google_sync(pcm16_bytes: bytes,
                          sr_hz: int = 16000,
                          language: str = LANGUAGE_CODE) -> str:
    """
    Synchronous Google Cloud Speech-to-Text recognition.

    Returns:
        Transcribed text, or an empty string if no speech was recognized

    Raises:
        SpeechRecognitionError: If the service could not be reached
    """
    audio = speech.RecognitionAudio(content=pcm16_bytes)
    config = speech.RecognitionConfig(
        encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
        sample_rate_hertz=sr_hz,
        language_code=language,
        enable_automatic_punctuation=True,
    )

    try:
        resp = _get_client().recognize(config=config, audio=audio)
    except google_exceptions.PermissionDenied as e:
        logger.error("Speech recognition not permitted: %s", e)
        raise PermissionError(str(e)) from e
    except google_exceptions.GoogleAPIError as e:
        logger.error("Speech recognition failed: %s", e)
        raise SpeechRecognitionError(str(e)) from e

    texts = [r.alternatives[0].transcript for r in resp.results if r.alternatives]
    return " ".join(texts).strip()
