"""
Archive utilities for listing and reading page images from .cbz/.zip files.
"""

import io
import logging
import os
import re
import zipfile
from pathlib import Path
from typing import Any, List, Tuple, Union

from novamanga.config import IMAGE_EXTENSIONS
from novamanga.exceptions import ArchiveLoadError, NoImagesFoundError

logger = logging.getLogger(__name__)

ArchiveSource = Union[str, Path, bytes, Any]  # path, raw bytes or binary file object


def natural_sort_key(name: str) -> List[Any]:
    """Numeric-aware, case-insensitive sort key so that page2 sorts before page10."""
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", name)]


def is_image_name(name: str) -> bool:
    extension = os.path.splitext(name)[1].lower().lstrip(".")
    return extension in IMAGE_EXTENSIONS


class ArchiveExtractor:
    """
    Opens a zip-like container and exposes its image entries in reading order.

    This class is responsible for:
    1. Reading the container into memory
    2. Filtering entries down to recognized image files
    3. Sorting them naturally by name
    4. Reading individual entries on demand
    """

    def __init__(self, source: ArchiveSource):
        """
        Initialize the extractor.

        Args:
            source: Path to the archive, its raw bytes, or a binary file object
        """
        self.source = source
        self.filename = self._describe(source)
        self._zip = None
        self._names = None

    @staticmethod
    def _describe(source: ArchiveSource) -> str:
        if isinstance(source, (str, Path)):
            return os.path.basename(str(source))
        return getattr(source, "name", "<archive>")

    def open(self) -> None:
        """
        Load the container and index its image entries.

        Raises:
            ArchiveLoadError: If the container is unreadable or corrupt
            NoImagesFoundError: If it holds no recognized image entries
        """
        logger.info(f"Loading archive {self.filename}")
        try:
            if isinstance(self.source, (str, Path)):
                with open(self.source, "rb") as f:
                    data = f.read()
            elif isinstance(self.source, (bytes, bytearray)):
                data = bytes(self.source)
            else:
                data = self.source.read()
            self._zip = zipfile.ZipFile(io.BytesIO(data))
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            logger.error(f"Error loading archive {self.filename}: {str(e)}")
            raise ArchiveLoadError(f"Failed to load archive {self.filename}") from e

        entries = [info for info in self._zip.infolist() if not info.is_dir()]
        names = [info.filename for info in entries if is_image_name(info.filename)]
        names.sort(key=natural_sort_key)
        logger.info(f"Archive {self.filename} has {len(entries)} entries, {len(names)} images")

        if not names:
            raise NoImagesFoundError(f"No images found in {self.filename}")
        self._names = names

    def image_names(self) -> List[str]:
        """Return image entry names in reading order, opening the archive if needed."""
        if self._names is None:
            self.open()
        return list(self._names)

    def read(self, name: str) -> bytes:
        """
        Read the bytes of one archive entry.

        Raises:
            KeyError: If the entry does not exist
            OSError / zipfile.BadZipFile: If the entry is corrupt
        """
        if self._zip is None:
            self.open()
        return self._zip.read(name)

    def extract(self) -> List[Tuple[str, bytes]]:
        """
        Read every image entry.

        Returns:
            Ordered list of (name, image bytes) pairs
        """
        try:
            return [(name, self.read(name)) for name in self.image_names()]
        except (KeyError, OSError, zipfile.BadZipFile) as e:
            raise ArchiveLoadError(f"Failed to read images from {self.filename}") from e

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None
