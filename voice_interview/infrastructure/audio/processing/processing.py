"""
Basic audio processing functions including format conversions, normalization
and energy-based voice activity detection.
"""
import io
import wave
from enum import Enum
from math import gcd
from typing import Optional

import numpy as np
from scipy.signal import resample_poly

from ....config import TARGET_RMS, VAD_SILENCE_THRESHOLD, VAD_SILENCE_DURATION, VAD_MIN_SPEECH_DURATION


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert stereo audio to mono by averaging channels."""
    return np.mean(x, axis=1)


def remove_dc(x: np.ndarray) -> np.ndarray:
    """Remove DC offset from audio signal."""
    return x - np.mean(x)


def resample(mono: np.ndarray, sr_in: int, sr_out: int) -> np.ndarray:
    """Resample audio between arbitrary integer rates."""
    if sr_in == sr_out:
        return mono.astype(np.float32)
    g = gcd(sr_in, sr_out)
    return resample_poly(mono, up=sr_out // g, down=sr_in // g).astype(np.float32)


def normalize_audio(audio: np.ndarray, target_rms: float = TARGET_RMS) -> np.ndarray:
    """Normalize audio to target RMS level."""
    rms = float(np.sqrt(np.mean(audio**2)) + 1e-9)
    gain = min(20.0, target_rms / rms) if rms > 0 else 1.0
    return audio * gain


def rms_level(samples: np.ndarray) -> float:
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples**2)))


def int16_to_float(data: bytes, channels: int = 1) -> np.ndarray:
    """Decode interleaved PCM16 bytes into mono float samples in [-1, 1]."""
    samples = np.frombuffer(data, dtype=np.int16).astype(np.float32) / 32768.0
    if channels > 1:
        samples = stereo_to_mono(samples.reshape(-1, channels))
    return samples


def float_to_pcm16(audio: np.ndarray) -> np.ndarray:
    return np.clip(audio * 32767, -32768, 32767).astype(np.int16)


def pcm16_to_wav_bytes(pcm16: bytes, sr: int, channels: int = 1) -> bytes:
    """Wrap raw PCM16 bytes in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sr)
        wf.writeframes(pcm16)
    return buffer.getvalue()


class VadEvent(str, Enum):
    SPEECH_STARTED = "speech_started"
    SPEECH_ENDED = "speech_ended"


class VoiceActivityDetector:
    """
    RMS-threshold speech segmentation.

    Speech starts on the first frame above ``silence_threshold`` and ends
    after ``silence_duration`` seconds of silence. Segments shorter than
    ``min_speech_duration`` are dropped and detection starts over.
    """

    def __init__(self,
                 silence_threshold: float = VAD_SILENCE_THRESHOLD,
                 silence_duration: float = VAD_SILENCE_DURATION,
                 min_speech_duration: float = VAD_MIN_SPEECH_DURATION):
        self.silence_threshold = silence_threshold
        self.silence_duration = silence_duration
        self.min_speech_duration = min_speech_duration
        self.reset()

    def reset(self) -> None:
        self.in_speech = False
        self.speech_seconds = 0.0
        self.silence_seconds = 0.0

    def update(self, frame: np.ndarray, frame_seconds: float) -> Optional[VadEvent]:
        """Feed one frame; returns an event when a segment starts or ends."""
        is_speaking = rms_level(frame) > self.silence_threshold

        if not self.in_speech:
            if is_speaking:
                self.in_speech = True
                self.speech_seconds = frame_seconds
                self.silence_seconds = 0.0
                return VadEvent.SPEECH_STARTED
            return None

        if is_speaking:
            self.speech_seconds += frame_seconds + self.silence_seconds
            self.silence_seconds = 0.0
            return None

        self.silence_seconds += frame_seconds
        if self.silence_seconds < self.silence_duration:
            return None

        long_enough = self.speech_seconds >= self.min_speech_duration
        self.reset()
        return VadEvent.SPEECH_ENDED if long_enough else None
