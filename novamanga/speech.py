"""Text-to-speech backends used for reading pages aloud."""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Optional

from novamanga.config import TTS_RATE, TTS_VOICE
from novamanga.exceptions import SpeechError

logger = logging.getLogger(__name__)


class BaseSpeechEngine(ABC):
    """Abstract base class for speech backends.

    `speak` returns when the utterance completes and raises
    :class:`SpeechError` when it fails; those are its only two terminal
    outcomes. `cancel` stops the current utterance immediately and must be
    safe to call in any state, including when nothing is playing.
    """

    name: str = "base"

    @abstractmethod
    async def speak(self, text: str) -> None:
        """Speak `text`, cancelling any previous utterance first."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the current utterance, if any."""

    def close(self) -> None:
        self.cancel()


class EdgeSpeechEngine(BaseSpeechEngine):
    """Backend synthesizing with Microsoft Edge neural voices, played through pygame."""

    name = "edge"

    def __init__(self, voice: str = TTS_VOICE, rate: str = TTS_RATE, poll_interval: float = 0.05):
        self.voice = voice
        self.rate = rate
        self.poll_interval = poll_interval
        self._audio_file: Optional[str] = None

    @staticmethod
    def _ensure_mixer() -> None:
        import pygame

        if not pygame.mixer.get_init():
            pygame.mixer.init()

    async def _synthesize(self, text: str) -> str:
        import edge_tts

        fd, path = tempfile.mkstemp(prefix="novamanga_", suffix=".mp3")
        os.close(fd)
        try:
            communicate = edge_tts.Communicate(text, self.voice, rate=self.rate)
            await communicate.save(path)
        except asyncio.CancelledError:
            self._remove(path)
            raise
        except Exception as e:
            self._remove(path)
            raise SpeechError(f"Speech synthesis failed: {e}") from e
        return path

    async def speak(self, text: str) -> None:
        import pygame

        self.cancel()
        path = await self._synthesize(text)
        self._audio_file = path
        try:
            try:
                self._ensure_mixer()
                pygame.mixer.music.load(path)
                pygame.mixer.music.play()
            except pygame.error as e:
                raise SpeechError(f"Audio playback failed: {e}") from e

            while pygame.mixer.music.get_busy():
                await asyncio.sleep(self.poll_interval)
        finally:
            self._release(path)

    def cancel(self) -> None:
        import pygame

        if pygame.mixer.get_init():
            pygame.mixer.music.stop()

    def close(self) -> None:
        self.cancel()
        import pygame

        if pygame.mixer.get_init():
            pygame.mixer.quit()

    def _release(self, path: str) -> None:
        import pygame

        if pygame.mixer.get_init() and self._audio_file == path:
            pygame.mixer.music.unload()
            self._audio_file = None
        self._remove(path)

    @staticmethod
    def _remove(path: str) -> None:
        try:
            os.remove(path)
        except OSError:
            logger.debug(f"Could not remove temporary audio file {path}")
