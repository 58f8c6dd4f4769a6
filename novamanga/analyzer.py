"""
Batch analysis: select unresolved pages, transcribe them in one request,
and record the results in the transcription cache.
"""

import logging
from typing import List, Tuple

from novamanga.batch import BatchProcessor, PageImage
from novamanga.cache import TranscriptionCache
from novamanga.config import BATCH_SIZE
from novamanga.data_models import AnalysisOutcome
from novamanga.exceptions import (
    AnalysisConnectionError,
    AnalysisEmptyResult,
    ResourceUnavailable,
)
from novamanga.page_store import PageStore
from novamanga.transcriber import BaseTranscriber

logger = logging.getLogger(__name__)


class BatchAnalyzer:
    """
    Runs one analysis request at a time against the transcription service.

    The analyzer keeps no state between calls. Single-flight is enforced by
    the caller (the playback controller's `is_analyzing` flag); the analyzer
    only guarantees that every request holds at most `batch_size` pages and
    that every requested page ends up cached, failed, or (for a partial
    response) left eligible for a later scan. Pages whose image cannot be
    loaded are dropped from the request and marked failed.
    """

    def __init__(
        self,
        page_store: PageStore,
        cache: TranscriptionCache,
        transcriber: BaseTranscriber,
        batch_size: int = BATCH_SIZE,
    ):
        """
        Initialize the analyzer.

        Args:
            page_store: Pages of the loaded archive
            cache: Cache receiving texts and failures
            transcriber: Remote transcription client
            batch_size: Maximum number of pages per request
        """
        self.page_store = page_store
        self.cache = cache
        self.transcriber = transcriber
        self.batch_processor = BatchProcessor(batch_size=batch_size)

    @property
    def batch_size(self) -> int:
        return self.batch_processor.batch_size

    def select_candidates(self, start_index: int) -> List[int]:
        """Pages the next request would cover; performs no I/O."""
        return self.batch_processor.select_candidates(
            start_index, self.page_store.count(), self.cache
        )

    async def analyze(self, start_index: int) -> AnalysisOutcome:
        """
        Select pages starting at `start_index` and analyze them.

        Returns:
            Outcome of the request; `submitted` is False if nothing was sent
        """
        return await self.analyze_candidates(self.select_candidates(start_index))

    async def _load_batch(self, indices: List[int]) -> Tuple[List[PageImage], List[int]]:
        batch = []
        unavailable = []
        for index in indices[:self.batch_size]:
            try:
                data = await self.page_store.load_bytes(index)
                batch.append(PageImage.from_bytes(index, data))
            except ResourceUnavailable as e:
                # Drop just this page; the rest of the batch still goes out
                logger.error(f"Failed to load image for page {index}: {str(e)}")
                unavailable.append(index)
        return batch, unavailable

    async def analyze_candidates(self, indices: List[int]) -> AnalysisOutcome:
        """
        Load, submit and record one batch of already-selected pages.

        Args:
            indices: Candidate pages, as returned by `select_candidates`

        Returns:
            Outcome describing which pages were transcribed or failed
        """
        batch, unavailable = await self._load_batch(indices)
        # Unreadable pages count as failed
        self._mark_failed(unavailable)
        if not batch:
            return AnalysisOutcome(unavailable=unavailable)

        requested = [page.index for page in batch]
        outcome = AnalysisOutcome(requested=requested, unavailable=unavailable)

        try:
            results = await self.transcriber.transcribe(batch)
        except Exception as e:
            error = e if isinstance(e, AnalysisConnectionError) else AnalysisConnectionError(str(e), requested)
            logger.error(f"Batch analysis failed for pages {requested}: {str(e)}")
            self._mark_failed(requested)
            outcome.failed = list(requested)
            outcome.error = error
            return outcome

        results = {index: text for index, text in results.items() if index in requested}
        if not results:
            logger.warning(f"Analysis returned no usable text for pages {requested}")
            self._mark_failed(requested)
            outcome.failed = list(requested)
            outcome.error = AnalysisEmptyResult("No usable text in response", requested)
            return outcome

        for index, text in results.items():
            self.cache.put(index, text)
        outcome.transcribed = sorted(results)

        missing = [index for index in requested if index not in results]
        if missing:
            # Left unresolved: a partial response is not proof the page has no text
            logger.warning(f"Response omitted pages {missing}; they stay eligible for a later scan")

        logger.info(f"Cached text for pages {outcome.transcribed}")
        return outcome

    def _mark_failed(self, indices: List[int]) -> None:
        for index in indices:
            self.cache.mark_failed(index)
