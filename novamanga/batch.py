"""
Batch selection for handling archive pages in small analysis batches.
"""

from dataclasses import dataclass
from io import BytesIO
from typing import List

from PIL import Image, UnidentifiedImageError

from novamanga.cache import TranscriptionCache
from novamanga.config import BATCH_SIZE
from novamanga.exceptions import ResourceUnavailable


@dataclass
class PageImage:
    """A single page's image bytes, ready to submit for analysis."""

    index: int
    data: bytes
    mime_type: str = "image/jpeg"

    @classmethod
    def from_bytes(cls, index: int, data: bytes) -> "PageImage":
        """
        Normalize raw archive bytes (png, webp, gif...) to an RGB JPEG.

        Raises:
            ResourceUnavailable: If the bytes are not a decodable image
        """
        try:
            image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ResourceUnavailable(index, f"undecodable image: {e}") from e

        if image.mode != "RGB":
            image = image.convert("RGB")
        buffered = BytesIO()
        image.save(buffered, format="JPEG", quality=90)
        return cls(index=index, data=buffered.getvalue())

    def to_pil(self) -> Image.Image:
        return Image.open(BytesIO(self.data))


class BatchProcessor:
    """
    Picks the pages that go into the next analysis request.

    Scanning starts at a given page and moves forward, skipping pages that
    are already cached or marked failed. At most `batch_size` pages are
    selected, and at most `2 * batch_size` pages are examined, so the scan
    cost stays bounded however sparse the eligible pages are.
    """

    def __init__(self, batch_size: int = BATCH_SIZE):
        """
        Initialize the batch processor.

        Args:
            batch_size: Maximum number of pages per request (default: 2)
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.batch_size = batch_size

    def select_candidates(
        self,
        start_index: int,
        page_count: int,
        cache: TranscriptionCache,
    ) -> List[int]:
        """
        Select up to `batch_size` unresolved pages starting at `start_index`.

        Args:
            start_index: First page to examine (inclusive)
            page_count: Number of pages in the archive
            cache: Cache holding texts and failed pages

        Returns:
            Page indices in ascending order; empty if nothing is eligible
        """
        candidates = []
        index = max(start_index, 0)
        examined = 0

        while (
            len(candidates) < self.batch_size
            and examined < self.batch_size * 2
            and index < page_count
        ):
            if not cache.has(index) and not cache.is_failed(index):
                candidates.append(index)
            index += 1
            examined += 1

        return candidates
