"""Speech-to-text and text-to-speech modules."""

from .tts import GoogleSpeechSynthesizer, EspeakSynthesizer
from .stt import recognize_google_sync, SpeechRecognitionError

__all__ = ["GoogleSpeechSynthesizer", "EspeakSynthesizer", "recognize_google_sync", "SpeechRecognitionError"]
