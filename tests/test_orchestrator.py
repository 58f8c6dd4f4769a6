"""
Tests for headless whole-archive transcription.
"""

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from novamanga.cache import TranscriptionCache
from novamanga.exceptions import AnalysisConnectionError, NoImagesFoundError
from novamanga.orchestrator import transcribe_archive, transcribe_pages
from fakes import FakeTranscriber, default_text, make_archive, make_page_store


class TestTranscribePages(unittest.IsolatedAsyncioTestCase):
    """Tests for the batch loop."""

    async def test_every_page_resolved(self):
        transcriber = FakeTranscriber()
        cache = await transcribe_pages(make_page_store(5), TranscriptionCache(), transcriber, batch_size=2)

        self.assertEqual(transcriber.calls, [[0, 1], [2, 3], [4]])
        self.assertEqual(len(cache), 5)
        self.assertEqual(cache.get(4), default_text(4))

    async def test_failures_are_recorded(self):
        def fail_first_batch(indices):
            if 0 in indices:
                raise AnalysisConnectionError("offline", indices)
            return {i: "ok" for i in indices}

        transcriber = FakeTranscriber(respond=fail_first_batch)
        cache = await transcribe_pages(make_page_store(3), TranscriptionCache(), transcriber, batch_size=2)
        self.assertEqual(cache.failed, {0, 1})
        self.assertEqual(cache.get(2), "ok")

    async def test_gives_up_on_omitted_page(self):
        """A page every response leaves out is eventually marked failed."""
        transcriber = FakeTranscriber(respond=lambda indices: {i: "ok" for i in indices if i != 1})
        cache = await transcribe_pages(
            make_page_store(4), TranscriptionCache(), transcriber, batch_size=2, max_attempts_per_page=3
        )
        self.assertTrue(cache.is_failed(1))
        self.assertEqual(cache.get(0), "ok")
        self.assertEqual(transcriber.calls, [[0, 1], [1, 2], [1, 3]])
        self.assertEqual(len(cache), 3)

    async def test_unreadable_pages_are_failed(self):
        transcriber = FakeTranscriber()
        cache = await transcribe_pages(
            make_page_store(3, broken=[1]), TranscriptionCache(), transcriber, batch_size=2
        )
        self.assertTrue(cache.is_failed(1))
        self.assertTrue(cache.has(0))
        self.assertTrue(cache.has(2))


class TestTranscribeArchive(unittest.TestCase):
    """Tests for the JSON export."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.archive_path = os.path.join(self.tmpdir.name, "volume1.cbz")
        self.output_path = os.path.join(self.tmpdir.name, "volume1.json")

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_archive(self, names, extra=None):
        with open(self.archive_path, "wb") as f:
            f.write(make_archive(names, extra))

    def test_export(self):
        self.write_archive(["p2.png", "p10.png", "p1.png"], extra={"ComicInfo.xml": b"<x/>"})
        transcriber = FakeTranscriber(respond=lambda indices: {i: f"text {i}" for i in indices if i != 2})

        path = transcribe_archive(self.archive_path, self.output_path, transcriber=transcriber)
        self.assertEqual(path, self.output_path)

        with open(path, encoding="utf-8") as f:
            result = json.load(f)
        self.assertEqual(result["archive_name"], "volume1.cbz")
        self.assertEqual(result["total_pages"], 3)
        self.assertEqual([p["name"] for p in result["pages"]], ["p1.png", "p2.png", "p10.png"])
        self.assertEqual(result["pages"][0], {"index": 0, "name": "p1.png", "text": "text 0", "failed": False})
        self.assertIsNone(result["pages"][2]["text"])
        self.assertTrue(result["pages"][2]["failed"])

    def test_archive_without_images(self):
        self.write_archive([], extra={"readme.txt": b"hi"})
        with self.assertRaises(NoImagesFoundError):
            transcribe_archive(self.archive_path, self.output_path, transcriber=FakeTranscriber())
        self.assertFalse(os.path.exists(self.output_path))


if __name__ == "__main__":
    unittest.main()
