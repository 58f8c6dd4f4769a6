"""Exception hierarchy for archive loading, page access, analysis and speech."""

from typing import Iterable, Optional


class NovamangaError(Exception):
    """Base exception for the reader."""


class ArchiveLoadError(NovamangaError):
    """Raised when an archive cannot be opened or read."""


class NoImagesFoundError(ArchiveLoadError):
    """Raised when an archive holds no recognized image entries."""


class IndexOutOfRange(NovamangaError, IndexError):
    """Raised when a page index falls outside the loaded archive."""

    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        super().__init__(f"Page index {index} out of range (0..{count - 1})")


class ResourceUnavailable(NovamangaError):
    """Raised when the bytes of a single page cannot be read."""

    def __init__(self, index: int, reason: str = ""):
        self.index = index
        detail = f": {reason}" if reason else ""
        super().__init__(f"Image for page {index} is unavailable{detail}")


class AnalysisError(NovamangaError):
    """Base exception for failed batch analysis."""

    def __init__(self, message: str, indices: Optional[Iterable[int]] = None):
        self.indices = tuple(indices or ())
        super().__init__(message)


class AnalysisEmptyResult(AnalysisError):
    """Service was reachable but produced no usable text for the batch."""


class AnalysisConnectionError(AnalysisError):
    """Network error, timeout or unparseable response from the service."""


class SpeechError(NovamangaError):
    """Raised when a speech backend fails to synthesize or play an utterance."""


__all__ = [
    "NovamangaError",
    "ArchiveLoadError",
    "NoImagesFoundError",
    "IndexOutOfRange",
    "ResourceUnavailable",
    "AnalysisError",
    "AnalysisEmptyResult",
    "AnalysisConnectionError",
    "SpeechError",
]
