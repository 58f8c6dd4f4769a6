import asyncio
import json
import logging
import os
from collections import Counter
from typing import Optional

from tqdm import tqdm

from novamanga.analyzer import BatchAnalyzer
from novamanga.archive import ArchiveExtractor
from novamanga.cache import TranscriptionCache
from novamanga.config import BATCH_SIZE
from novamanga.page_store import PageStore
from novamanga.transcriber import BaseTranscriber, create_transcriber

logger = logging.getLogger(__name__)


def _first_unresolved(cache: TranscriptionCache, page_count: int) -> Optional[int]:
    for index in range(page_count):
        if not cache.is_resolved(index):
            return index
    return None


async def transcribe_pages(
    page_store: PageStore,
    cache: TranscriptionCache,
    transcriber: BaseTranscriber,
    batch_size: int = BATCH_SIZE,
    max_attempts_per_page: int = 3,
) -> TranscriptionCache:
    """
    Analyze batches until every page is either cached or failed.

    Pages a response keeps omitting are given up on (marked failed) after
    `max_attempts_per_page` requests, so the run always terminates.
    """
    analyzer = BatchAnalyzer(page_store, cache, transcriber, batch_size=batch_size)
    page_count = page_store.count()
    attempts = Counter()

    with tqdm(total=page_count, desc="Transcribing pages") as progress:
        while True:
            start = _first_unresolved(cache, page_count)
            if start is None:
                break

            resolved_before = sum(1 for i in range(page_count) if cache.is_resolved(i))
            candidates = analyzer.select_candidates(start)
            outcome = await analyzer.analyze_candidates(candidates)
            logger.debug(f"Batch outcome: {outcome.to_dict()}")

            for index in outcome.requested:
                attempts[index] += 1
                if not cache.is_resolved(index) and attempts[index] >= max_attempts_per_page:
                    logger.warning(f"Giving up on page {index} after {attempts[index]} attempts")
                    cache.mark_failed(index)

            resolved_after = sum(1 for i in range(page_count) if cache.is_resolved(i))
            progress.update(resolved_after - resolved_before)

    return cache


def transcribe_archive(
    archive_path: str,
    output_path: str,
    transcriber: Optional[BaseTranscriber] = None,
    batch_size: int = BATCH_SIZE,
) -> str:
    """
    Transcribe every page of an archive and save the result as JSON.

    Args:
        archive_path: Path to the input .cbz/.zip file
        output_path: Path to save the output JSON file
        transcriber: Transcription client; built from configuration if omitted
        batch_size: Maximum pages per request

    Returns:
        Path to the generated output file
    """
    logger.info(f"Starting transcription of archive: {archive_path}")

    extractor = ArchiveExtractor(archive_path)
    try:
        page_store = PageStore.from_archive(extractor)
        cache = TranscriptionCache()
        asyncio.run(transcribe_pages(
            page_store, cache, transcriber or create_transcriber(), batch_size=batch_size
        ))
    finally:
        extractor.close()

    result_dict = {
        "archive_name": os.path.basename(archive_path),
        "total_pages": page_store.count(),
        "pages": [
            {
                "index": page.index,
                "name": page.name,
                "text": cache.get(page.index),
                "failed": cache.is_failed(page.index),
            }
            for page in page_store.pages()
        ],
    }

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(result_dict, f, indent=2, ensure_ascii=False)

    logger.info(f"Processing complete. Transcribed {len(cache)} of {page_store.count()} pages.")
    logger.info(f"Output saved to {output_path}")

    return output_path
