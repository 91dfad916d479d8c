"""
Audio output through the platform's command line player (afplay or aplay).
"""
import asyncio
import logging
import os
import shutil
import tempfile
from typing import List, Optional

from ...interview.services import AudioOutputDevice, SynthesizedAudio
from .processing.processing import pcm16_to_wav_bytes

logger = logging.getLogger("audio_output")


class SubprocessAudioOutput(AudioOutputDevice):
    """Plays audio by writing a temporary WAV file and running a player on it."""

    PLAYERS = (["afplay"], ["aplay", "-q"])

    def __init__(self, player: Optional[List[str]] = None):
        self.player = player
        self._process: Optional[asyncio.subprocess.Process] = None

    def _player_command(self) -> List[str]:
        if self.player:
            return list(self.player)
        for command in self.PLAYERS:
            if shutil.which(command[0]):
                return list(command)
        raise RuntimeError("No audio player found (tried afplay, aplay)")

    async def play(self, audio: SynthesizedAudio) -> None:
        command = self._player_command()
        wav = audio.data if audio.is_wav else pcm16_to_wav_bytes(audio.data, audio.sample_rate)

        with tempfile.NamedTemporaryFile(suffix='.wav', delete=False) as tmp_file:
            wav_path = tmp_file.name
            tmp_file.write(wav)

        try:
            self._process = await asyncio.create_subprocess_exec(
                *command, wav_path,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await self._process.communicate()
            except asyncio.CancelledError:
                self._terminate()
                raise
            returncode = self._process.returncode
            # negative return code: terminated by stop()
            if returncode is not None and returncode > 0:
                raise RuntimeError(f"{command[0]} exited with {returncode}: {stderr.decode(errors='ignore').strip()}")
        finally:
            self._process = None
            try:
                os.unlink(wav_path)
            except OSError:
                pass

    def _terminate(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass

    async def stop(self) -> None:
        if self._process is not None:
            logger.info("Stopping audio player")
        self._terminate()
