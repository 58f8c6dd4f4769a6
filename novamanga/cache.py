"""
Per-session transcription cache and failed-page set.
"""

import logging
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)


class TranscriptionCache:
    """
    Maps page index to transcribed text, alongside the set of pages whose
    analysis definitively failed for this session.

    A page is never cached and failed at the same time: `put` refuses a
    failed page until `clear_failed` has been called for it, and failures
    are only recorded for pages without text.
    """

    def __init__(self):
        self._texts: Dict[int, str] = {}
        self._failed: Set[int] = set()

    def has(self, index: int) -> bool:
        return index in self._texts

    def get(self, index: int) -> Optional[str]:
        return self._texts.get(index)

    def put(self, index: int, text: str) -> None:
        if index in self._failed:
            raise ValueError(f"Page {index} is marked failed; clear it before caching text")
        if index in self._texts and self._texts[index] != text:
            logger.debug(f"Overwriting cached text for page {index}")
        self._texts[index] = text

    def mark_failed(self, index: int) -> None:
        if index in self._texts:
            logger.debug(f"Page {index} already has text; not marking it failed")
            return
        self._failed.add(index)

    def is_failed(self, index: int) -> bool:
        return index in self._failed

    def clear_failed(self, index: int) -> None:
        self._failed.discard(index)

    def is_resolved(self, index: int) -> bool:
        """A page is resolved once it has text or is marked failed."""
        return index in self._texts or index in self._failed

    @property
    def failed(self) -> Set[int]:
        return set(self._failed)

    def __len__(self) -> int:
        return len(self._texts)
