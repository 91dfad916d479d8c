"""
Audio processing and voice activity detection tests.
"""
import numpy as np

from voice_interview.infrastructure.audio.processing import (
    VadEvent, VoiceActivityDetector, normalize_audio, pcm16_to_wav_bytes, remove_dc, resample, rms_level,
)
from voice_interview.infrastructure.audio.processing.processing import float_to_pcm16, int16_to_float

FRAME = 0.03
LOUD = np.full(1440, 0.5, dtype=np.float32)
SILENT = np.zeros(1440, dtype=np.float32)


def feed(vad, frame, count):
    return [event for event in (vad.update(frame, FRAME) for _ in range(count)) if event is not None]


def test_vad_detects_a_speech_segment():
    vad = VoiceActivityDetector(silence_threshold=0.01, silence_duration=1.2, min_speech_duration=0.5)

    assert feed(vad, SILENT, 10) == []
    assert feed(vad, LOUD, 20) == [VadEvent.SPEECH_STARTED]
    assert vad.in_speech
    assert feed(vad, SILENT, 45) == [VadEvent.SPEECH_ENDED]
    assert not vad.in_speech


def test_vad_drops_short_bursts():
    vad = VoiceActivityDetector(silence_threshold=0.01, silence_duration=0.3, min_speech_duration=0.5)

    assert feed(vad, LOUD, 3) == [VadEvent.SPEECH_STARTED]
    assert feed(vad, SILENT, 20) == []
    assert not vad.in_speech


def test_vad_short_pauses_stay_in_one_segment():
    vad = VoiceActivityDetector(silence_threshold=0.01, silence_duration=0.3, min_speech_duration=0.5)

    events = feed(vad, LOUD, 10) + feed(vad, SILENT, 5) + feed(vad, LOUD, 10) + feed(vad, SILENT, 20)

    assert events == [VadEvent.SPEECH_STARTED, VadEvent.SPEECH_ENDED]


def test_resample_changes_length():
    audio = np.random.default_rng(0).standard_normal(48000).astype(np.float32)

    assert len(resample(audio, 48000, 16000)) == 16000
    assert len(resample(audio, 48000, 48000)) == 48000
    assert resample(audio, 48000, 16000).dtype == np.float32


def test_remove_dc_and_normalize():
    audio = np.full(1000, 0.2, dtype=np.float32) + np.sin(np.linspace(0, 20, 1000)).astype(np.float32) * 0.01

    centred = remove_dc(audio)
    assert abs(float(np.mean(centred))) < 1e-6

    normalized = normalize_audio(centred, target_rms=0.06)
    assert abs(rms_level(normalized) - 0.06) < 1e-3


def test_pcm_round_trip_and_wav_header():
    pcm = float_to_pcm16(np.array([0.0, 0.5, -0.5, 1.5], dtype=np.float32))
    assert pcm.tolist() == [0, 16383, -16383, 32767]

    stereo = np.array([1000, 3000, -2000, -4000], dtype=np.int16).tobytes()
    mono = int16_to_float(stereo, channels=2)
    assert np.allclose(mono, [2000 / 32768.0, -3000 / 32768.0])

    wav = pcm16_to_wav_bytes(pcm.tobytes(), 16000)
    assert wav[:4] == b"RIFF"
    assert wav[8:12] == b"WAVE"


def test_rms_of_empty_frame():
    assert rms_level(np.array([], dtype=np.float32)) == 0.0
