"""
Playback controller: the state machine that reads an archive aloud.

On every event (navigation, playback toggle, analysis completion, speech
completion, timer fire) the controller re-evaluates one priority-ordered
rule list and acts on the first match:

1. not playing            -> cancel speech, do nothing else
2. current page has text  -> speak it, pause, advance
3. current page unknown   -> analyze a batch starting at the current page
4. current page failed    -> wait, then skip it

Independently of 2, while the current page has text and no request is in
flight, the next page is prefetched. At most one analysis request is ever
outstanding: the `is_analyzing` flag is checked and set before the first
suspension point and cleared only when the request resolves.

All methods must be called from the thread running the asyncio loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from novamanga.analyzer import BatchAnalyzer
from novamanga.archive import ArchiveExtractor, ArchiveSource
from novamanga.cache import TranscriptionCache
from novamanga.config import (
    BATCH_SIZE,
    FAILED_PAGE_SKIP_DELAY,
    LONG_PAUSE,
    SHORT_PAUSE,
    SHORT_TEXT_LENGTH,
)
from novamanga.data_models import AnalysisOutcome, PlaybackState, ReaderState, ReaderStatus
from novamanga.exceptions import AnalysisError, ArchiveLoadError, NoImagesFoundError
from novamanga.navigation import NavigationAction, NavigationResult, Navigator
from novamanga.page_store import PageStore
from novamanga.speech import BaseSpeechEngine
from novamanga.transcriber import BaseTranscriber

logger = logging.getLogger(__name__)

NO_IMAGES_MESSAGE = "No images found in the archive."
LOAD_FAILED_MESSAGE = "Failed to load file. Please ensure it is a valid .cbz or .zip."
ANALYSIS_FAILED_MESSAGE = "Analysis failed. Please check your API Key or try again."

KEY_PREV = "ArrowLeft"
KEY_NEXT = "ArrowRight"
KEY_TOGGLE = " "


@dataclass
class ReaderSession:
    """Everything that belongs to one loaded archive."""
    extractor: ArchiveExtractor
    page_store: PageStore
    cache: TranscriptionCache
    analyzer: BatchAnalyzer
    navigator: Navigator
    playback: PlaybackState = field(default_factory=PlaybackState)

    @classmethod
    def create(
        cls,
        extractor: ArchiveExtractor,
        page_store: PageStore,
        transcriber: BaseTranscriber,
        batch_size: int = BATCH_SIZE,
    ) -> "ReaderSession":
        cache = TranscriptionCache()
        return cls(
            extractor=extractor,
            page_store=page_store,
            cache=cache,
            analyzer=BatchAnalyzer(page_store, cache, transcriber, batch_size=batch_size),
            navigator=Navigator(page_store),
        )


class PlaybackController:
    """
    Owns the reader session and is its only mutator.

    The session is replaced wholesale when a new archive is loaded; the
    speech engine and transcriber outlive sessions.
    """

    def __init__(
        self,
        transcriber: BaseTranscriber,
        speech: BaseSpeechEngine,
        batch_size: int = BATCH_SIZE,
        short_pause: float = SHORT_PAUSE,
        long_pause: float = LONG_PAUSE,
        skip_delay: float = FAILED_PAGE_SKIP_DELAY,
        short_text_length: int = SHORT_TEXT_LENGTH,
    ):
        """
        Initialize the controller.

        Args:
            transcriber: Remote transcription client shared by all sessions
            speech: Speech backend
            batch_size: Maximum pages per analysis request
            short_pause: Pause in seconds after speaking a short text
            long_pause: Pause in seconds after speaking any other text
            skip_delay: Delay in seconds before skipping a failed page
            short_text_length: Texts shorter than this get the short pause
        """
        self.transcriber = transcriber
        self.speech = speech
        self.batch_size = batch_size
        self.short_pause = short_pause
        self.long_pause = long_pause
        self.skip_delay = skip_delay
        self.short_text_length = short_text_length

        self.state = ReaderState.IDLE
        self.session: Optional[ReaderSession] = None
        self.error_message: Optional[str] = None

        self._utterance: Optional[asyncio.Task] = None
        self._advance: Optional[asyncio.TimerHandle] = None
        self._analysis: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def load_archive(self, source: ArchiveSource) -> bool:
        """
        Load an archive and enter reading mode at its first page.

        Args:
            source: Path to a .cbz/.zip file, its bytes, or a binary file object

        Returns:
            True if reading mode was entered; otherwise the controller is
            back in IDLE and `error_message` says why
        """
        self._teardown_session()
        self.state = ReaderState.LOADING_FILE
        self.error_message = None

        extractor = ArchiveExtractor(source)
        try:
            page_store = await asyncio.to_thread(PageStore.from_archive, extractor)
        except NoImagesFoundError as e:
            logger.warning(str(e))
            self._fail_load(extractor, NO_IMAGES_MESSAGE)
            return False
        except ArchiveLoadError as e:
            logger.error(f"{str(e)}: {e.__cause__}")
            self._fail_load(extractor, LOAD_FAILED_MESSAGE)
            return False

        self.session = ReaderSession.create(
            extractor, page_store, self.transcriber, batch_size=self.batch_size
        )
        self.state = ReaderState.READING
        logger.info(f"Reading {extractor.filename}: {page_store.count()} pages")
        return True

    def _fail_load(self, extractor: ArchiveExtractor, message: str) -> None:
        extractor.close()
        self.error_message = message
        self.state = ReaderState.IDLE

    def _teardown_session(self) -> None:
        self._cancel_speech()
        self._cancel_advance()
        if self._analysis is not None:
            self._analysis.cancel()
            self._analysis = None
        if self.session is not None:
            self.session.extractor.close()
            self.session = None
        self.state = ReaderState.IDLE

    def close(self) -> None:
        self._teardown_session()
        self.speech.close()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def next(self) -> None:
        if self.state == ReaderState.READING:
            self._apply_move(self.session.navigator.next(self.session.playback.current_index))

    def prev(self) -> None:
        if self.state == ReaderState.READING:
            self._apply_move(self.session.navigator.prev(self.session.playback.current_index))

    def seek(self, index: int) -> None:
        if self.state == ReaderState.READING:
            self._apply_move(self.session.navigator.seek(self.session.playback.current_index, index))

    def toggle_play(self) -> None:
        if self.session is not None:
            self.set_playing(not self.session.playback.is_playing)

    def set_playing(self, playing: bool) -> None:
        if self.state != ReaderState.READING:
            return
        self.session.playback.is_playing = playing
        logger.debug(f"Playback {'started' if playing else 'stopped'}")
        self.evaluate()

    def retry_current(self) -> bool:
        """
        Manually re-analyze the current page, clearing its failed mark first.

        Works whether or not playback is active. Returns True if a request
        was started; False if one is already in flight or nothing is eligible.
        """
        if self.state != ReaderState.READING:
            return False
        session = self.session
        index = session.playback.current_index
        if session.cache.is_failed(index):
            session.cache.clear_failed(index)
            if self._utterance is None:
                # A pending skip no longer applies
                self._cancel_advance()

        started = self._start_analysis(index, manual=True)
        self.evaluate()
        return started

    def dismiss_error(self) -> None:
        self.error_message = None

    def handle_key(self, key: str) -> bool:
        """Apply a keyboard binding; returns False if the key is unbound or ignored."""
        if self.state != ReaderState.READING:
            return False
        if key == KEY_NEXT:
            self.next()
        elif key == KEY_PREV:
            self.prev()
        elif key == KEY_TOGGLE:
            self.toggle_play()
        else:
            return False
        return True

    def status(self) -> ReaderStatus:
        session = self.session
        if self.state != ReaderState.READING or session is None:
            return ReaderStatus(
                state=self.state,
                current_index=0,
                page_count=0,
                page_name=None,
                is_playing=False,
                is_analyzing=False,
                has_transcription=False,
                has_failed=False,
                error_message=self.error_message,
            )
        playback = session.playback
        index = playback.current_index
        return ReaderStatus(
            state=self.state,
            current_index=index,
            page_count=session.page_store.count(),
            page_name=session.page_store.get(index).name,
            is_playing=playback.is_playing,
            is_analyzing=playback.is_analyzing,
            has_transcription=session.cache.has(index),
            has_failed=session.cache.is_failed(index),
            error_message=self.error_message,
        )

    async def join_analysis(self) -> None:
        """Wait until the in-flight analysis request, if any, has resolved."""
        while self._analysis is not None:
            await asyncio.wait({self._analysis})

    # ------------------------------------------------------------------
    # Decision function
    # ------------------------------------------------------------------

    def evaluate(self) -> None:
        """Re-run the rule list against the current session state."""
        if self.state != ReaderState.READING or self.session is None:
            return
        session = self.session
        playback = session.playback
        cache = session.cache

        if not playback.is_playing:
            self._cancel_speech()
            self._cancel_advance()
            return

        index = playback.current_index
        busy = self._utterance is not None or self._advance is not None

        if cache.has(index):
            if not busy:
                self._begin_speech(index, cache.get(index))
        elif not playback.is_analyzing and not cache.is_failed(index):
            self._start_analysis(index)
        elif cache.is_failed(index) and not busy:
            logger.info(f"Page {index} failed analysis; skipping in {self.skip_delay}s")
            self._schedule_advance(index, self.skip_delay)

        # Prefetch while the current page is being read
        if cache.has(index) and not playback.is_analyzing:
            next_index = index + 1
            if (
                session.page_store.contains(next_index)
                and not cache.has(next_index)
                and not cache.is_failed(next_index)
            ):
                self._start_analysis(next_index)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _apply_move(self, result: NavigationResult) -> None:
        self._cancel_speech()
        self._cancel_advance()

        playback = self.session.playback
        if result.action == NavigationAction.MOVE:
            playback.current_index = result.index
            logger.debug(f"Moved to page {result.index}")
        elif result.action == NavigationAction.STOP:
            playback.is_playing = False
            logger.info("Reached the end of the archive; playback stopped")
        self.evaluate()

    def _is_current(self, index: int) -> bool:
        return (
            self.session is not None
            and self.session.playback.is_playing
            and self.session.playback.current_index == index
        )

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _start_analysis(self, start_index: int, manual: bool = False) -> bool:
        session = self.session
        if session.playback.is_analyzing:
            return False
        candidates = session.analyzer.select_candidates(start_index)
        if not candidates:
            return False

        # Set before the first suspension point so no second request can start
        session.playback.is_analyzing = True
        self._analysis = asyncio.ensure_future(self._run_analysis(session, candidates, manual))
        return True

    async def _run_analysis(self, session: ReaderSession, candidates, manual: bool) -> None:
        try:
            outcome = await session.analyzer.analyze_candidates(candidates)
        except Exception as e:
            logger.error(f"Unexpected error analyzing pages {candidates}: {str(e)}", exc_info=True)
            for index in candidates:
                session.cache.mark_failed(index)
            outcome = AnalysisOutcome(
                requested=list(candidates),
                failed=[index for index in candidates if session.cache.is_failed(index)],
                error=AnalysisError(str(e), candidates),
            )
        finally:
            session.playback.is_analyzing = False
            if self._analysis is asyncio.current_task():
                self._analysis = None

        if session is not self.session:
            return
        if outcome.error is not None or outcome.unavailable:
            self._report_failure(outcome, manual)
        self.evaluate()

    def _report_failure(self, outcome: AnalysisOutcome, manual: bool) -> None:
        # Avoid a wall of banners during continuous playback
        playing = self.session.playback.is_playing
        if manual or (not playing and self.error_message is None):
            self.error_message = ANALYSIS_FAILED_MESSAGE

    # ------------------------------------------------------------------
    # Speech and timers
    # ------------------------------------------------------------------

    def _pause_for(self, text: str) -> float:
        return self.short_pause if len(text) < self.short_text_length else self.long_pause

    def _begin_speech(self, index: int, text: str) -> None:
        if not text.strip():
            # Nothing to say on this page
            self._schedule_advance(index, self._pause_for(text))
            return
        self._utterance = asyncio.ensure_future(self._speak(index, text))

    async def _speak(self, index: int, text: str) -> None:
        try:
            await self.speech.speak(text)
        except Exception as e:
            logger.warning(f"Speech failed on page {index}: {str(e)}")
            if self._utterance is asyncio.current_task():
                self._utterance = None
            if self._is_current(index):
                self.next()
            return

        if self._utterance is asyncio.current_task():
            self._utterance = None
        if self._is_current(index):
            self._schedule_advance(index, self._pause_for(text))

    def _cancel_speech(self) -> None:
        self.speech.cancel()
        if self._utterance is not None:
            self._utterance.cancel()
            self._utterance = None

    def _schedule_advance(self, index: int, delay: float) -> None:
        self._cancel_advance()
        loop = asyncio.get_running_loop()
        self._advance = loop.call_later(delay, self._on_advance_timer, index)

    def _cancel_advance(self) -> None:
        if self._advance is not None:
            self._advance.cancel()
            self._advance = None

    def _on_advance_timer(self, index: int) -> None:
        self._advance = None
        if self._is_current(index):
            self.next()
