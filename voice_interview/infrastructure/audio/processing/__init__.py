"""Audio processing and capture modules."""

# Import processing functions immediately (no dependencies)
from .processing import (
    stereo_to_mono,
    remove_dc,
    resample,
    normalize_audio,
    rms_level,
    pcm16_to_wav_bytes,
    VadEvent,
    VoiceActivityDetector,
)

# Lazy imports for capture (avoid importing the speech client unless needed)
def _get_microphone_recognizer():
    """Lazy import for MicrophoneRecognizer."""
    from .capture import MicrophoneRecognizer
    return MicrophoneRecognizer

# Export MicrophoneRecognizer via __getattr__ for lazy loading
def __getattr__(name):
    if name == "MicrophoneRecognizer":
        return _get_microphone_recognizer()
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

__all__ = [
    "MicrophoneRecognizer",
    "stereo_to_mono",
    "remove_dc",
    "resample",
    "normalize_audio",
    "rms_level",
    "pcm16_to_wav_bytes",
    "VadEvent",
    "VoiceActivityDetector",
]
