"""
Tests for structured response parsing and manga reading order.
"""

import sys
import unittest
from pathlib import Path

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

from novamanga.data_models import Bubble
from novamanga.response_parser import ResponseParser, join_bubbles, sort_bubbles


class TestReadingOrder(unittest.TestCase):
    """Rows top to bottom, right to left within a row."""

    def test_same_row_right_to_left(self):
        bubbles = [
            Bubble(text="A", ymin=10, xmin=900),
            Bubble(text="B", ymin=15, xmin=100),
            Bubble(text="C", ymin=500, xmin=500),
        ]
        self.assertEqual(join_bubbles(bubbles, row_tolerance=50), "A B C")

    def test_input_order_does_not_matter(self):
        bubbles = [
            Bubble(text="C", ymin=500, xmin=500),
            Bubble(text="B", ymin=15, xmin=100),
            Bubble(text="A", ymin=10, xmin=900),
        ]
        self.assertEqual(join_bubbles(bubbles, row_tolerance=50), "A B C")

    def test_rows_top_to_bottom(self):
        bubbles = [
            Bubble(text="bottom", ymin=700, xmin=900),
            Bubble(text="top-left", ymin=100, xmin=50),
            Bubble(text="top-right", ymin=120, xmin=800),
        ]
        ordered = [b.text for b in sort_bubbles(bubbles)]
        self.assertEqual(ordered, ["top-right", "top-left", "bottom"])

    def test_tolerance_is_exclusive(self):
        """Bubbles exactly one tolerance apart are on different rows."""
        bubbles = [
            Bubble(text="left-lower", ymin=60, xmin=100),
            Bubble(text="right-upper", ymin=10, xmin=900),
        ]
        self.assertEqual(join_bubbles(bubbles, row_tolerance=50), "right-upper left-lower")

        bubbles = [
            Bubble(text="left-upper", ymin=10, xmin=100),
            Bubble(text="right-lower", ymin=60, xmin=900),
        ]
        self.assertEqual(join_bubbles(bubbles, row_tolerance=50), "left-upper right-lower")


class TestResponseParser(unittest.TestCase):
    """Tests for the ResponseParser class."""

    def setUp(self):
        self.parser = ResponseParser(row_tolerance=50)

    def test_parse_bubbles_per_page(self):
        response = """
{
  "page_0": [
    {"text": "B", "ymin": 15, "xmin": 100},
    {"text": "A", "ymin": 10, "xmin": 900}
  ],
  "page_1": [{"text": "Hi!", "ymin": 300, "xmin": 300}]
}
"""
        self.assertEqual(self.parser.parse_response(response, [0, 1]), {0: "A B", 1: "Hi!"})

    def test_strips_code_fences(self):
        response = '```json\n{"page_2": [{"text": "Yo", "ymin": 1, "xmin": 1}]}\n```'
        self.assertEqual(self.parser.parse_response(response, [2]), {2: "Yo"})

        response = '```\n{"page_2": "plain"}\n```'
        self.assertEqual(self.parser.parse_response(response, [2]), {2: "plain"})

    def test_partial_response(self):
        """Pages missing from the response are simply absent from the mapping."""
        response = '{"page_0": [{"text": "only me", "ymin": 0, "xmin": 0}]}'
        self.assertEqual(self.parser.parse_response(response, [0, 1]), {0: "only me"})

    def test_unrequested_pages_are_ignored(self):
        response = '{"page_0": "a", "page_7": "b"}'
        self.assertEqual(self.parser.parse_response(response, [0]), {0: "a"})

    def test_empty_bubble_list(self):
        response = '{"page_0": []}'
        self.assertEqual(self.parser.parse_response(response, [0]), {0: ""})

    def test_missing_coordinates_default_to_zero(self):
        response = '{"page_0": [{"text": "second", "ymin": 400}, {"text": "first"}]}'
        self.assertEqual(self.parser.parse_response(response, [0]), {0: "first second"})

    def test_invalid_responses(self):
        with self.assertRaises(ValueError):
            self.parser.parse_response("", [0])
        with self.assertRaises(ValueError):
            self.parser.parse_response("not json", [0])
        with self.assertRaises(ValueError):
            self.parser.parse_response('["page_0"]', [0])


if __name__ == "__main__":
    unittest.main()
