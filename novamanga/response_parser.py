import json
import logging
import re
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List

from novamanga.config import ROW_TOLERANCE
from novamanga.data_models import Bubble

logger = logging.getLogger(__name__)


def page_key(index: int) -> str:
    return f"page_{index}"


def _coordinate(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def sort_bubbles(bubbles: List[Bubble], row_tolerance: float = ROW_TOLERANCE) -> List[Bubble]:
    """
    Order bubbles for manga reading: rows top to bottom, right to left within a row.

    Two bubbles whose top edges differ by less than `row_tolerance` share a row.
    """
    def compare(a: Bubble, b: Bubble) -> float:
        if abs(a.ymin - b.ymin) < row_tolerance:
            # Same row: the bubble further right is read first
            return b.xmin - a.xmin
        return a.ymin - b.ymin

    return sorted(bubbles, key=cmp_to_key(compare))


def join_bubbles(bubbles: List[Bubble], row_tolerance: float = ROW_TOLERANCE) -> str:
    return " ".join(bubble.text for bubble in sort_bubbles(bubbles, row_tolerance))


class ResponseParser:
    """
    Parses the model's structured JSON output into per-page text.
    """

    def __init__(self, row_tolerance: float = ROW_TOLERANCE):
        """Initialize the response parser."""
        self.row_tolerance = row_tolerance
        # Markdown code fences some models wrap around JSON output
        self.fence_pattern = re.compile(r"^```(?:json)?\s*|\s*```$")

    def strip_fences(self, text: str) -> str:
        return self.fence_pattern.sub("", text.strip())

    def parse_bubbles(self, items: Iterable[Any]) -> List[Bubble]:
        bubbles = []
        for item in items:
            if not isinstance(item, dict) or item.get("text") is None:
                continue
            bubbles.append(Bubble(
                text=str(item["text"]),
                ymin=_coordinate(item.get("ymin")),
                xmin=_coordinate(item.get("xmin")),
            ))
        return bubbles

    def parse_response(self, response_text: str, indices: Iterable[int]) -> Dict[int, str]:
        """
        Parse the raw model response into a mapping of page index to text.

        Args:
            response_text: Raw text response from the model
            indices: Page indices that were sent in the request

        Returns:
            Mapping for the pages the response covers; may be partial or empty

        Raises:
            ValueError: If the response is empty or is not a JSON object
        """
        if not response_text or not response_text.strip():
            raise ValueError("Empty response")

        data = json.loads(self.strip_fences(response_text))
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        result = {}
        for index in indices:
            value = data.get(page_key(index))
            if isinstance(value, list):
                result[index] = join_bubbles(self.parse_bubbles(value), self.row_tolerance)
            elif isinstance(value, str):
                # Fallback if the model returns a simple string
                result[index] = value

        logger.info(f"Parsed text for {len(result)} page(s) from model response")
        return result
