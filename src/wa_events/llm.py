"""Gemini LLM client for event classification and extraction.

Wraps the async surface of the Google ``google-genai`` SDK.  Every call is
bounded by a timeout and runs through a :class:`~wa_events.retry.RetryPolicy`
that retries rate-limit and 5xx-class responses only.  Responses are parsed
strictly: anything that is not the declared shape is a
:class:`~wa_events.exceptions.SchemaValidationError`, never retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from pydantic import ValidationError

from wa_events.exceptions import (
    ExternalApiError,
    ExternalApiPermanentError,
    ExternalApiTransientError,
    LLMTimeoutError,
    SchemaValidationError,
)
from wa_events.models.event import ExtractedEvent
from wa_events.prompts import (
    ChatMessage,
    build_classification_messages,
    build_extraction_messages,
)
from wa_events.retry import RetryPolicy, exponential_backoff

if TYPE_CHECKING:
    from wa_events.config import Settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

TEMPERATURE = 0.1
CLASSIFICATION_MAX_TOKENS = 100
EXTRACTION_MAX_TOKENS = 1000

_FENCE_RE = re.compile(r"```(?:json)?\n?")

# Gemini calls the assistant role "model".
_ROLE_MAP = {"user": "user", "assistant": "model"}


def is_retryable_api_error(exc: BaseException) -> bool:
    """Whether *exc* is a transient LLM failure worth retrying."""
    return isinstance(exc, ExternalApiTransientError)


def llm_retry_policy(max_retries: int = 3, base_delay: float = 1.0) -> RetryPolicy:
    """Build the LLM retry policy: ``base * 2**(i-1)`` before retry *i*."""
    return RetryPolicy(
        max_attempts=max_retries + 1,
        delay=exponential_backoff(base_delay, factor=2.0),
        is_retryable=is_retryable_api_error,
    )


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fences (```` ``` ```` / ```` ```json ````) and trim."""
    return _FENCE_RE.sub("", text).strip()


def translate_api_error(exc: genai_errors.APIError) -> ExternalApiError:
    """Map an SDK error to a transient or permanent API error."""
    status = exc.code
    retry_after = _retry_after_seconds(exc)
    message = f"Gemini API error {status}: {exc.message or exc.status or 'unknown error'}"
    if status in RETRYABLE_STATUS_CODES:
        return ExternalApiTransientError(message, status_code=status, retry_after=retry_after)
    return ExternalApiPermanentError(message, status_code=status)


def _retry_after_seconds(exc: genai_errors.APIError) -> float | None:
    headers = getattr(getattr(exc, "response", None), "headers", None)
    if not headers:
        return None
    raw = headers.get("retry-after") or headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(float(raw), 0.0)
    except (TypeError, ValueError):
        return None


class GeminiClient:
    """Async client for the classify and extract calls.

    Args:
        api_key: Google Gemini API key.
        model: Model identifier.  Defaults to ``"gemini-2.0-flash"``.
        timeout: Per-call timeout in seconds.
        retry_policy: Retry policy for transient errors.  Defaults to
            :func:`llm_retry_policy`.
        client: Pre-built ``genai.Client``; created from *api_key* when
            omitted.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        client: genai.Client | None = None,
    ) -> None:
        self._client = client if client is not None else genai.Client(api_key=api_key)
        self._model = model
        self._timeout = timeout
        self._retry = retry_policy or llm_retry_policy()

    @classmethod
    def from_settings(cls, settings: Settings) -> GeminiClient:
        """Build a client from application settings."""
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.llm_timeout,
            retry_policy=llm_retry_policy(
                settings.llm_max_retries, settings.llm_retry_base_delay
            ),
        )

    @property
    def model(self) -> str:
        return self._model

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        *,
        temperature: float = TEMPERATURE,
        max_output_tokens: int = EXTRACTION_MAX_TOKENS,
        json_output: bool = False,
    ) -> str:
        """Send *messages* and return the text of the first candidate.

        Args:
            messages: Role-tagged prompt.  ``system`` messages are joined
                into the system instruction.
            temperature: Sampling temperature.
            max_output_tokens: Output size limit.
            json_output: Force a JSON response body.

        Returns:
            The raw response text (never empty).

        Raises:
            LLMTimeoutError: If an attempt exceeds the timeout.
            ExternalApiTransientError: If the retry bound is exhausted.
            ExternalApiPermanentError: On a non-retryable status or a
                network failure.
            SchemaValidationError: If the response carries no text.
        """
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = [
            genai_types.Content(
                role=_ROLE_MAP[m.role],
                parts=[genai_types.Part(text=m.content)],
            )
            for m in messages
            if m.role != "system"
        ]
        config = genai_types.GenerateContentConfig(
            system_instruction=system or None,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_mime_type="application/json" if json_output else None,
        )

        logger.debug("Calling Gemini model %s (%d message(s))", self._model, len(messages))
        return await self._retry.call(
            lambda: self._generate(contents, config),
            description=f"Gemini call ({self._model})",
        )

    async def classify_message(self, text: str) -> bool:
        """Stage 1: decide whether *text* describes a schedulable event.

        Blank text is "not an event" and makes no call.

        Raises:
            SchemaValidationError: If the answer is not ``0`` or ``1``.
            ExternalApiError: On endpoint failures (see :meth:`complete`).
        """
        if not text or not text.strip():
            return False

        raw = await self.complete(
            build_classification_messages(text),
            max_output_tokens=CLASSIFICATION_MAX_TOKENS,
        )
        logger.debug("Raw classification response: %r", raw)

        answer = strip_code_fences(raw)
        if answer not in ("0", "1"):
            raise SchemaValidationError(
                f"Invalid classification response: expected '0' or '1', got {answer!r}",
                raw_response=raw,
            )

        is_event = answer == "1"
        logger.info("Message classified as %s", "parsable event" if is_event else "noise")
        return is_event

    async def extract_event(
        self,
        text: str,
        current_date: str,
        timezone: str = "America/Santiago",
        language: str = "Spanish",
    ) -> ExtractedEvent:
        """Stage 2: extract one structured event from *text*.

        Args:
            text: Message text already classified as an event.
            current_date: Today's date (``YYYY-MM-DD``) for resolving
                relative dates.
            timezone: Default time zone for the offsets.
            language: Language for the free-text fields.

        Raises:
            SchemaValidationError: If the body is not a JSON object matching
                :class:`ExtractedEvent`.
            ExternalApiError: On endpoint failures (see :meth:`complete`).
        """
        raw = await self.complete(
            build_extraction_messages(text, current_date, timezone, language),
            max_output_tokens=EXTRACTION_MAX_TOKENS,
            json_output=True,
        )
        logger.debug("Raw extraction response: %r", raw)

        event = self._parse_event(strip_code_fences(raw), raw)
        logger.info("Extracted event: '%s' at %s", event.title, event.start_at)
        return event

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _generate(
        self,
        contents: list[genai_types.Content],
        config: genai_types.GenerateContentConfig,
    ) -> str:
        """Run one attempt and return the response text."""
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._model,
                    contents=contents,
                    config=config,
                ),
                timeout=self._timeout,
            )
        except TimeoutError:
            raise LLMTimeoutError(self._timeout) from None
        except genai_errors.APIError as exc:
            raise translate_api_error(exc) from exc
        except (OSError, httpx.HTTPError) as exc:
            raise ExternalApiPermanentError(f"Network error calling Gemini: {exc}") from exc

        text = response.text
        if not text or not text.strip():
            raise SchemaValidationError("Empty content in API response", raw_response=text or "")
        return text

    @staticmethod
    def _parse_event(cleaned: str, raw: str) -> ExtractedEvent:
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise SchemaValidationError(f"Invalid JSON: {exc}", raw_response=raw) from exc

        if not isinstance(data, dict):
            raise SchemaValidationError(
                f"Expected a JSON object, got {type(data).__name__}", raw_response=raw
            )

        try:
            return ExtractedEvent.model_validate(data)
        except ValidationError as exc:
            raise SchemaValidationError(
                f"Invalid event schema: {exc}", raw_response=raw
            ) from exc
