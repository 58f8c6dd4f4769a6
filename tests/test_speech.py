"""
Tests for the Edge TTS speech backend with synthesis and playback mocked out.
"""

import asyncio
import os
import sys
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from novamanga.exceptions import SpeechError
from novamanga.speech import EdgeSpeechEngine


class TestEdgeSpeechEngine(unittest.IsolatedAsyncioTestCase):

    async def test_speak_plays_and_cleans_up(self):
        communicate = MagicMock()
        communicate.save = AsyncMock()
        music = MagicMock()
        music.get_busy.side_effect = [True, False]

        engine = EdgeSpeechEngine(voice="en-US-AriaNeural", poll_interval=0)
        with patch("edge_tts.Communicate", return_value=communicate) as communicate_cls, \
                patch("pygame.mixer.get_init", return_value=True), \
                patch("pygame.mixer.music", music):
            await engine.speak("Hello there")

        communicate_cls.assert_called_once_with("Hello there", "en-US-AriaNeural", rate=engine.rate)
        path = communicate.save.call_args.args[0]
        music.load.assert_called_once_with(path)
        music.play.assert_called_once_with()
        music.unload.assert_called_once_with()
        self.assertFalse(os.path.exists(path))

    async def test_synthesis_failure(self):
        communicate = MagicMock()
        communicate.save = AsyncMock(side_effect=ConnectionError("no network"))

        engine = EdgeSpeechEngine()
        with patch("edge_tts.Communicate", return_value=communicate), \
                patch("pygame.mixer.get_init", return_value=None):
            with self.assertRaises(SpeechError):
                await engine.speak("Hello")

        path = communicate.save.call_args.args[0]
        self.assertFalse(os.path.exists(path))

    async def test_cancel_during_synthesis_removes_temp_file(self):
        paths = []
        started = asyncio.Event()

        async def slow_save(path):
            paths.append(path)
            started.set()
            await asyncio.sleep(10)

        communicate = MagicMock()
        communicate.save = slow_save

        engine = EdgeSpeechEngine()
        with patch("edge_tts.Communicate", return_value=communicate), \
                patch("pygame.mixer.get_init", return_value=None):
            task = asyncio.ensure_future(engine.speak("A long sentence"))
            await started.wait()
            self.assertTrue(os.path.exists(paths[0]))
            task.cancel()
            with self.assertRaises(asyncio.CancelledError):
                await task

        self.assertFalse(os.path.exists(paths[0]))

    def test_cancel_without_mixer(self):
        with patch("pygame.mixer.get_init", return_value=None), \
                patch("pygame.mixer.music") as music:
            EdgeSpeechEngine().cancel()
        music.stop.assert_not_called()


if __name__ == "__main__":
    unittest.main()
