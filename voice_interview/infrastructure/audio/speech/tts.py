"""
Text-to-speech using Google Cloud TTS, with espeak as the on-device fallback.
"""
import asyncio
import logging
import shutil
from typing import Optional

from google.cloud import texttospeech

from ....config import LANGUAGE_CODE, TTS_SAMPLE_RATE, TTS_RATE_WPM, TTS_PITCH, TTS_AMPLITUDE
from ....interview.services import LocalSynthesizer, SpeechSynthesisService, SynthesizedAudio

logger = logging.getLogger("speech_tts")


class GoogleSpeechSynthesizer(SpeechSynthesisService):
    """High-quality Google Cloud Text-to-Speech returning LINEAR16 WAV audio."""

    def __init__(self, language_code: str = LANGUAGE_CODE, sample_rate: int = TTS_SAMPLE_RATE):
        self.language_code = language_code
        self.sample_rate = sample_rate
        self._client: Optional[texttospeech.TextToSpeechClient] = None

    def _get_client(self) -> texttospeech.TextToSpeechClient:
        if self._client is None:
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    async def synthesize(self, text: str, voice: Optional[str]) -> SynthesizedAudio:
        return await asyncio.to_thread(self._synthesize_sync, text, voice)

    def _synthesize_sync(self, text: str, voice: Optional[str]) -> SynthesizedAudio:
        synthesis_input = texttospeech.SynthesisInput(text=text)

        if voice:
            voice_params = texttospeech.VoiceSelectionParams(language_code=self.language_code, name=voice)
        else:
            # Neutral default voice of the language
            voice_params = texttospeech.VoiceSelectionParams(
                language_code=self.language_code,
                ssml_gender=texttospeech.SsmlVoiceGender.NEUTRAL,
            )

        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate
        )

        response = self._get_client().synthesize_speech(
            input=synthesis_input, voice=voice_params, audio_config=audio_config
        )
        logger.debug("Synthesized %d bytes with voice %s", len(response.audio_content), voice or "default")
        return SynthesizedAudio(data=response.audio_content, sample_rate=self.sample_rate, voice=voice)


class EspeakSynthesizer(LocalSynthesizer):
    """On-device synthesis through the espeak command line tool."""

    BINARIES = ("espeak-ng", "espeak")

    def __init__(self, rate_wpm: int = TTS_RATE_WPM, pitch: int = TTS_PITCH, amplitude: int = TTS_AMPLITUDE):
        self.rate_wpm = rate_wpm
        self.pitch = pitch
        self.amplitude = amplitude

    def _binary(self) -> Optional[str]:
        for name in self.BINARIES:
            path = shutil.which(name)
            if path:
                return path
        return None

    def available(self) -> bool:
        return self._binary() is not None

    async def speak(self, text: str) -> None:
        binary = self._binary()
        if binary is None:
            raise RuntimeError("espeak is not installed")

        process = await asyncio.create_subprocess_exec(
            binary, "-s", str(self.rate_wpm), "-p", str(self.pitch), "-a", str(self.amplitude), text,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.terminate()
            raise
        if process.returncode != 0:
            raise RuntimeError(f"espeak exited with {process.returncode}: {stderr.decode(errors='ignore').strip()}")
