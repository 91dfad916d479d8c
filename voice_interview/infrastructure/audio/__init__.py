"""
Audio processing, speech services and playback for the interview session.

This module contains all audio-related functionality organized into clear submodules:
- processing: Signal processing, voice activity detection and microphone capture
- speech: Text-to-speech and speech-to-text services
- output: Playback of synthesized audio through the system player
"""

from .processing import VoiceActivityDetector
from .speech import GoogleSpeechSynthesizer, EspeakSynthesizer, recognize_google_sync
from .output import SubprocessAudioOutput

__all__ = [
    "VoiceActivityDetector",
    "GoogleSpeechSynthesizer",
    "EspeakSynthesizer",
    "recognize_google_sync",
    "SubprocessAudioOutput",
]
