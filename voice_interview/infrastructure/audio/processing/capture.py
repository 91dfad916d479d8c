"""
Microphone capture with Voice Activity Detection and Google speech recognition.

The microphone is read on a worker thread; device events are handed back to
the event loop with ``call_soon_threadsafe``.
"""
import asyncio
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

import numpy as np

from ....config import (
    CHANNELS, SAMPLE_RATE_CAPTURE, SAMPLE_RATE_TARGET, FRAME_MS, TARGET_RMS,
    LANGUAGE_CODE, MAX_LISTEN_SECONDS, VAD_SILENCE_THRESHOLD, VAD_SILENCE_DURATION,
    VAD_MIN_SPEECH_DURATION,
)
from ....interview.services import (
    CaptureEventType, CaptureListener, DeviceAlreadyStartedError, SpeechCaptureDevice,
)
from ....utils import with_suppressed_audio_warnings
from ..speech.stt import SpeechRecognitionError, recognize_google_sync
from .processing import (
    VadEvent, VoiceActivityDetector, float_to_pcm16, int16_to_float,
    normalize_audio, remove_dc, resample,
)

logger = logging.getLogger("audio_capture")


class MicrophoneRecognizer(SpeechCaptureDevice):
    """
    Speech capture device built on PyAudio.

    Each detected speech segment is transcribed and reported as a final
    transcript. A session ends on its own after ``max_listen_seconds``.
    """

    def __init__(self,
                 input_device: Optional[int] = None,
                 num_channels: int = CHANNELS,
                 sr_capture: int = SAMPLE_RATE_CAPTURE,
                 sr_target: int = SAMPLE_RATE_TARGET,
                 frame_ms: int = FRAME_MS,
                 target_rms: float = TARGET_RMS,
                 language_code: str = LANGUAGE_CODE,
                 max_listen_seconds: float = MAX_LISTEN_SECONDS,
                 silence_threshold: float = VAD_SILENCE_THRESHOLD,
                 silence_duration: float = VAD_SILENCE_DURATION,
                 min_speech_duration: float = VAD_MIN_SPEECH_DURATION,
                 recognizer: Callable[..., str] = recognize_google_sync):
        self.input_device = input_device
        self.num_channels = num_channels
        self.sr_capture = sr_capture
        self.sr_target = sr_target
        self.frame_size = int(sr_capture * frame_ms / 1000)
        self.target_rms = target_rms
        self.language_code = language_code
        self.max_listen_seconds = max_listen_seconds
        self.recognizer = recognizer
        self.vad_settings = (silence_threshold, silence_duration, min_speech_duration)

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    async def start(self, listener: CaptureListener) -> None:
        if self.running:
            raise DeviceAlreadyStartedError("microphone session already running")

        self._loop = asyncio.get_running_loop()
        stream_handle = await asyncio.to_thread(self._open_stream)

        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(stream_handle, self._stop_event, listener),
            name="microphone-recognizer",
            daemon=True,
        )
        self._thread.start()
        logger.info("Microphone session started")

    async def stop(self) -> None:
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread.is_alive():
            await asyncio.to_thread(thread.join, 2.0)
            logger.info("Microphone session stopped")

    @with_suppressed_audio_warnings
    def _open_stream(self) -> Tuple[object, object]:
        """Open the PyAudio input stream. PyAudio is imported lazily."""
        import pyaudio

        pa = pyaudio.PyAudio()
        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=self.num_channels,
                rate=self.sr_capture,
                input=True,
                input_device_index=self.input_device,
                frames_per_buffer=self.frame_size,
            )
        except OSError as e:
            pa.terminate()
            if "permission" in str(e).lower():
                raise PermissionError(str(e)) from e
            raise
        return pa, stream

    def _post(self, listener: CaptureListener, kind: CaptureEventType, payload: Optional[str] = None) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(listener, kind, payload)
        except RuntimeError:
            logger.debug("Event loop closed, dropping %s", kind.value)

    def _run(self, stream_handle, stop_event: threading.Event, listener: CaptureListener) -> None:
        pa, stream = stream_handle
        vad = VoiceActivityDetector(*self.vad_settings)
        frame_seconds = self.frame_size / self.sr_capture
        frames: List[np.ndarray] = []
        started = time.monotonic()

        try:
            while not stop_event.is_set():
                data = stream.read(self.frame_size, exception_on_overflow=False)
                samples = int16_to_float(data, self.num_channels)
                event = vad.update(samples, frame_seconds)

                if vad.in_speech or event == VadEvent.SPEECH_ENDED:
                    frames.append(samples)
                elif frames:
                    # too short to be speech
                    frames = []

                if event == VadEvent.SPEECH_STARTED:
                    logger.debug("Speech detected")
                elif event == VadEvent.SPEECH_ENDED:
                    segment, frames = np.concatenate(frames), []
                    if stop_event.is_set():
                        break
                    self._transcribe_segment(segment, listener)

                if time.monotonic() - started > self.max_listen_seconds:
                    logger.info("Listening window elapsed after %.0fs", self.max_listen_seconds)
                    self._post(listener, CaptureEventType.ENDED)
                    break
        except PermissionError as e:
            logger.error("Microphone permission lost: %s", e)
            self._post(listener, CaptureEventType.ERROR, "not-allowed")
        except OSError as e:
            logger.error("Microphone read failed: %s", e)
            self._post(listener, CaptureEventType.ERROR, "audio-capture")
        except Exception as e:
            logger.exception("Microphone session crashed: %s", e)
            self._post(listener, CaptureEventType.ERROR, "unknown")
        finally:
            try:
                stream.stop_stream()
                stream.close()
            finally:
                pa.terminate()

    def _transcribe_segment(self, segment: np.ndarray, listener: CaptureListener) -> None:
        audio = normalize_audio(resample(remove_dc(segment), self.sr_capture, self.sr_target), self.target_rms)
        pcm16 = float_to_pcm16(audio)
        logger.info("Transcribing %.1fs of speech", len(pcm16) / self.sr_target)

        try:
            text = self.recognizer(pcm16.tobytes(), sr_hz=self.sr_target, language=self.language_code)
        except PermissionError:
            self._post(listener, CaptureEventType.ERROR, "not-allowed")
            return
        except SpeechRecognitionError:
            self._post(listener, CaptureEventType.ERROR, "network")
            return
        except Exception as e:
            # credentials and transport failures outside the speech client
            logger.error("Speech recognition failed: %s", e)
            self._post(listener, CaptureEventType.ERROR, "network")
            return

        if text:
            logger.info("Speech recognition result: %s", text)
            self._post(listener, CaptureEventType.FINAL_TRANSCRIPT, text)
        else:
            self._post(listener, CaptureEventType.ERROR, "no-speech")
