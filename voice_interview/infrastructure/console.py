"""
Keyboard and terminal adapters for running an interview without audio.
"""
import asyncio
import logging
import sys
import threading
from typing import Optional

from ..interview.services import (
    CaptureEventType, CaptureListener, DeviceAlreadyStartedError, LocalSynthesizer, SpeechCaptureDevice,
)

logger = logging.getLogger("console")


class ConsoleCaptureDevice(SpeechCaptureDevice):
    """
    Capture device fed by typed lines.

    Lines only reach the session while a capture session is open, so text
    typed while the interviewer is speaking is dropped like speech would be.
    """

    def __init__(self):
        self._listener: Optional[CaptureListener] = None

    @property
    def listening(self) -> bool:
        return self._listener is not None

    async def start(self, listener: CaptureListener) -> None:
        if self._listener is not None:
            raise DeviceAlreadyStartedError("console capture already running")
        self._listener = listener

    async def stop(self) -> None:
        self._listener = None

    def submit(self, text: str) -> bool:
        """Deliver a typed line as a final transcript. Returns False if not listening."""
        if self._listener is None:
            return False
        self._listener(CaptureEventType.FINAL_TRANSCRIPT, text)
        return True


class ConsoleSpeaker(LocalSynthesizer):
    """Prints interviewer utterances instead of speaking them."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout

    def available(self) -> bool:
        return True

    async def speak(self, text: str) -> None:
        print(f"\n🤖 Interviewer: {text}\n", file=self.stream, flush=True)


class StdinReader:
    """Reads stdin lines on a daemon thread and queues them on the event loop."""

    def __init__(self):
        self.lines: asyncio.Queue = asyncio.Queue()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._run, args=(loop,), name="stdin-reader", daemon=True)
        self._thread.start()

    def _run(self, loop: asyncio.AbstractEventLoop) -> None:
        for line in sys.stdin:
            try:
                loop.call_soon_threadsafe(self.lines.put_nowait, line.rstrip("\n"))
            except RuntimeError:
                return
        # EOF
        try:
            loop.call_soon_threadsafe(self.lines.put_nowait, None)
        except RuntimeError:
            logger.debug("Event loop closed before stdin EOF was delivered")

    async def readline(self) -> Optional[str]:
        """Next line, or None at end of input."""
        return await self.lines.get()
