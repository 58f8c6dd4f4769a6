from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from novamanga.exceptions import AnalysisError


class ReaderState(str, Enum):
    """Lifecycle of a reader session."""
    IDLE = "IDLE"
    LOADING_FILE = "LOADING_FILE"
    READING = "READING"


@dataclass(frozen=True)
class Page:
    """A single archive page. The index is its identity everywhere else."""
    index: int
    image_ref: str  # archive member name
    name: str


@dataclass
class Bubble:
    """One text bubble as located by the model, on a 0-1000 page scale."""
    text: str
    ymin: float = 0
    xmin: float = 0


@dataclass
class PlaybackState:
    """Mutable playback flags owned by the controller."""
    current_index: int = 0
    is_playing: bool = False
    is_analyzing: bool = False


@dataclass
class AnalysisOutcome:
    """Result of one batch analysis, after cache effects were applied."""
    requested: List[int] = field(default_factory=list)
    transcribed: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    unavailable: List[int] = field(default_factory=list)
    error: Optional[AnalysisError] = None

    @property
    def submitted(self) -> bool:
        """Whether a request actually went to the transcription service."""
        return bool(self.requested)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "requested": self.requested,
            "transcribed": self.transcribed,
            "failed": self.failed,
            "unavailable": self.unavailable,
            "error": type(self.error).__name__ if self.error else None,
        }


@dataclass(frozen=True)
class ReaderStatus:
    """Read-only snapshot of the session for presentation code."""
    state: ReaderState
    current_index: int
    page_count: int
    page_name: Optional[str]
    is_playing: bool
    is_analyzing: bool
    has_transcription: bool
    has_failed: bool
    error_message: Optional[str]
