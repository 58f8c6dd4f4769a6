"""
Ordered, read-only store of the pages extracted from a loaded archive.
"""

import asyncio
import logging
import zipfile
import zlib
from typing import Callable, List, Sequence

from novamanga.archive import ArchiveExtractor
from novamanga.data_models import Page
from novamanga.exceptions import IndexOutOfRange, ResourceUnavailable

logger = logging.getLogger(__name__)


class PageStore:
    """
    Holds the ordered pages of one archive and resolves their image bytes.

    Pages never change after the store is built; the page index is the
    identity used by the cache, the analyzer and the controller.
    """

    def __init__(self, pages: Sequence[Page], loader: Callable[[str], bytes]):
        """
        Initialize the page store.

        Args:
            pages: Pages in reading order, with index equal to position
            loader: Callable returning the bytes behind a page's image_ref
        """
        self._pages: List[Page] = list(pages)
        self._loader = loader

    @classmethod
    def from_archive(cls, extractor: ArchiveExtractor) -> "PageStore":
        """Build a store from an archive; raises ArchiveLoadError subclasses on failure."""
        pages = [
            Page(index=i, image_ref=name, name=name)
            for i, name in enumerate(extractor.image_names())
        ]
        return cls(pages, extractor.read)

    def count(self) -> int:
        return len(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def contains(self, index: int) -> bool:
        return 0 <= index < len(self._pages)

    def get(self, index: int) -> Page:
        if not self.contains(index):
            raise IndexOutOfRange(index, len(self._pages))
        return self._pages[index]

    def pages(self) -> List[Page]:
        return list(self._pages)

    async def load_bytes(self, index: int) -> bytes:
        """
        Fetch the image bytes of a page without blocking the event loop.

        Raises:
            IndexOutOfRange: If the index is invalid
            ResourceUnavailable: If the underlying blob cannot be read
        """
        page = self.get(index)
        try:
            data = await asyncio.to_thread(self._loader, page.image_ref)
        except (KeyError, OSError, zipfile.BadZipFile, zlib.error) as e:
            raise ResourceUnavailable(index, str(e)) from e
        if not data:
            raise ResourceUnavailable(index, "empty image data")
        return data
