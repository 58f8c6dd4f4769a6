"""
Tests for navigation bounds and the command-line front end.
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from main import apply_command, describe
from novamanga.data_models import ReaderState, ReaderStatus
from novamanga.navigation import NavigationAction, Navigator
from fakes import make_page_store


class TestNavigator(unittest.TestCase):

    def setUp(self):
        self.navigator = Navigator(make_page_store(3))

    def test_moves_within_range(self):
        result = self.navigator.next(0)
        self.assertEqual(result.action, NavigationAction.MOVE)
        self.assertEqual(result.index, 1)
        self.assertEqual(self.navigator.seek(0, 2).index, 2)

    def test_past_the_end_stops(self):
        result = self.navigator.next(2)
        self.assertEqual(result.action, NavigationAction.STOP)
        self.assertEqual(result.index, 2)

    def test_before_the_start_stays(self):
        result = self.navigator.prev(0)
        self.assertEqual(result.action, NavigationAction.STAY)
        self.assertEqual(result.index, 0)


class TestCommands(unittest.TestCase):
    """Typed commands map onto controller actions."""

    def setUp(self):
        self.controller = MagicMock()

    def test_key_commands(self):
        self.assertTrue(apply_command(self.controller, ""))
        self.assertTrue(apply_command(self.controller, "n"))
        self.assertTrue(apply_command(self.controller, "p"))
        keys = [c.args[0] for c in self.controller.handle_key.call_args_list]
        self.assertEqual(keys, [" ", "ArrowRight", "ArrowLeft"])

    def test_go_to_page_is_one_based(self):
        apply_command(self.controller, "g 5")
        self.controller.seek.assert_called_once_with(4)

    def test_bad_page_number(self):
        self.assertTrue(apply_command(self.controller, "g five"))
        self.controller.seek.assert_not_called()

    def test_retry_dismiss_and_quit(self):
        apply_command(self.controller, "r")
        apply_command(self.controller, "x")
        self.controller.retry_current.assert_called_once_with()
        self.controller.dismiss_error.assert_called_once_with()
        self.assertFalse(apply_command(self.controller, "q"))

    def test_describe(self):
        status = ReaderStatus(
            state=ReaderState.READING,
            current_index=1,
            page_count=10,
            page_name="p2.png",
            is_playing=True,
            is_analyzing=False,
            has_transcription=False,
            has_failed=True,
            error_message="Analysis failed. Please check your API Key or try again.",
        )
        line = describe(status)
        self.assertTrue(line.startswith("Page 2/10 (p2.png)"))
        self.assertIn("auto-reading", line)
        self.assertIn("extraction failed", line)
        self.assertIn("Analysis failed", line)


if __name__ == "__main__":
    unittest.main()
