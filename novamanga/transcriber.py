"""
Large Multimodal Model (LMM) clients for transcribing manga page batches.
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from novamanga.batch import PageImage
from novamanga.config import (
    GEMINI_API_KEY,
    OPENAI_API_KEY,
    PROMPT_PATH,
    TRANSCRIPTION_MAX_ATTEMPTS,
    TRANSCRIPTION_MAX_OUTPUT_TOKENS,
    TRANSCRIPTION_MODEL,
    TRANSCRIPTION_TEMPERATURE,
    TRANSCRIPTION_TIMEOUT,
)
from novamanga.exceptions import AnalysisConnectionError
from novamanga.response_parser import ResponseParser, page_key

logger = logging.getLogger(__name__)


class BaseTranscriber(ABC):
    """
    Client for transcribing the text bubbles of a batch of pages.

    This class handles:
    1. Preparing inputs (labelled images and the instruction prompt)
    2. Calling the model API under one client-side timeout, with retries
    3. Parsing the structured response into per-page text

    Subclasses only implement the vendor call in `_call_api`.
    """

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        timeout: float = TRANSCRIPTION_TIMEOUT,
        max_attempts: int = TRANSCRIPTION_MAX_ATTEMPTS,
        temperature: float = TRANSCRIPTION_TEMPERATURE,
        max_tokens: int = TRANSCRIPTION_MAX_OUTPUT_TOKENS,
        parser: Optional[ResponseParser] = None,
    ):
        """
        Initialize the transcriber.

        Args:
            model_name: Name of the model to use
            api_key: API key for the model provider; without one every call returns {}
            timeout: Client-side limit in seconds for the whole request, retries included
            max_attempts: Attempts per request for transient API errors
            temperature: Temperature for generation (lower = more deterministic)
            max_tokens: Maximum tokens in the model response
            parser: Parser for the structured output
        """
        self.model_name = model_name
        self.api_key = api_key
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.parser = parser or ResponseParser()

        with open(PROMPT_PATH, "r", encoding="utf-8") as f:
            self.prompt_template = f.read()

    def _create_prompt(self, batch: List[PageImage]) -> str:
        keys = ", ".join(page_key(page.index) for page in batch)
        return self.prompt_template.format(page_keys=keys)

    async def transcribe(self, batch: List[PageImage]) -> Dict[int, str]:
        """
        Transcribe a batch of page images.

        Args:
            batch: Page images to analyze in one request

        Returns:
            Mapping of page index to text; may cover only some pages, and is
            empty when credentials are missing or nothing usable came back

        Raises:
            AnalysisConnectionError: On network errors, timeout or an unparseable response
        """
        if not batch:
            return {}
        if not self.api_key:
            logger.warning(f"No API key configured for {self.model_name}; skipping analysis")
            return {}

        indices = [page.index for page in batch]
        logger.info(f"Sending {len(batch)} page images to {self.model_name} for pages {indices}")

        try:
            response_text = await asyncio.wait_for(
                self._request(self._create_prompt(batch), batch),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Analysis of pages {indices} timed out after {self.timeout}s")
            raise AnalysisConnectionError(f"Timed out after {self.timeout}s", indices) from e
        except Exception as e:
            logger.error(f"Error calling {self.model_name}: {str(e)}")
            raise AnalysisConnectionError(f"Request failed: {e}", indices) from e

        try:
            return self.parser.parse_response(response_text, indices)
        except ValueError as e:
            logger.error(f"Could not parse response for pages {indices}: {str(e)}")
            logger.debug(f"Response snippet: {(response_text or '')[:500]}...")
            raise AnalysisConnectionError(f"Unparseable response: {e}", indices) from e

    async def _request(self, prompt: str, batch: List[PageImage]) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            reraise=True,
        ):
            with attempt:
                return await self._call_api(prompt, batch)

    @abstractmethod
    async def _call_api(self, prompt: str, batch: List[PageImage]) -> str:
        """Send one request and return the raw response text."""


class GeminiTranscriber(BaseTranscriber):
    """Transcriber backed by Google Gemini."""

    def __init__(self, model_name: str = TRANSCRIPTION_MODEL, api_key: Optional[str] = None, **kwargs):
        super().__init__(model_name, api_key=api_key or GEMINI_API_KEY, **kwargs)
        self.model = None

    def _init_client(self) -> Any:
        import google.generativeai as genai

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config={
                "max_output_tokens": self.max_tokens,
                "temperature": self.temperature,
                "response_mime_type": "application/json",
            }
        )
        logger.info(f"Initialized Gemini client with model: {self.model_name}")
        return self.model

    async def _call_api(self, prompt: str, batch: List[PageImage]) -> str:
        model = self.model or self._init_client()

        # Each image is preceded by the key its text must be returned under
        content_parts: List[Any] = []
        for page in batch:
            content_parts.append(f"Image for {page_key(page.index)}")
            content_parts.append(page.to_pil())
        content_parts.append(prompt)

        response = await model.generate_content_async(content_parts)
        if not hasattr(response, "text"):
            raise ValueError(f"Unexpected response format: {response}")
        return response.text


class OpenAITranscriber(BaseTranscriber):
    """Transcriber backed by an OpenAI-compatible vision chat model."""

    def __init__(self, model_name: str, api_key: Optional[str] = None, **kwargs):
        super().__init__(model_name, api_key=api_key or OPENAI_API_KEY, **kwargs)
        self.client = None

    def _init_client(self) -> Any:
        from openai import AsyncOpenAI

        self.client = AsyncOpenAI(api_key=self.api_key)
        logger.info(f"Initialized OpenAI client with model: {self.model_name}")
        return self.client

    async def _call_api(self, prompt: str, batch: List[PageImage]) -> str:
        client = self.client or self._init_client()

        content: List[Dict[str, Any]] = []
        for page in batch:
            content.append({"type": "text", "text": f"Image for {page_key(page.index)}"})
            img_b64 = base64.b64encode(page.data).decode("utf-8")
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:{page.mime_type};base64,{img_b64}"},
            })
        content.append({"type": "text", "text": prompt})

        response = await client.chat.completions.create(
            model=self.model_name,
            messages=[{"role": "user", "content": content}],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content


def create_transcriber(model_name: str = TRANSCRIPTION_MODEL, **kwargs) -> BaseTranscriber:
    """Pick the backend from the model name: Gemini models go to Google, others to OpenAI."""
    if "gemini" in model_name.lower():
        return GeminiTranscriber(model_name=model_name, **kwargs)
    return OpenAITranscriber(model_name=model_name, **kwargs)
