"""Retry-and-extract envelope around analysis calls.

Analysis responses are free text. The structured payload may be wrapped in a
named delimiter block (``<changelog>...</changelog>``), in a fenced code block,
in both, or in neither. A response that cannot be parsed is treated like a
failed call: both are retried with exponential backoff, and only the final
failure reaches the caller.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Iterator
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from wikisync.config import ConfigError, load_settings
from wikisync.constants import ANALYSIS_TEMPERATURE, MAX_TOKENS

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Any info string (json, javascript, ...) after the opening fence is skipped
FENCED_BLOCK_PATTERN = re.compile(r"```[ \t]*[\w+-]*[ \t]*\n?(.*?)```", re.DOTALL)


class ExtractionError(Exception):
    """Raised when no structured payload can be recovered from a response."""

    pass


def _delimiter_pattern(tag: str) -> re.Pattern[str]:
    return re.compile(rf"<{re.escape(tag)}>(.*?)</{re.escape(tag)}>", re.DOTALL)


def _candidates(text: str, tag: str | None) -> Iterator[str]:
    """Yield payload candidates in extraction order.

    Delimiter block first (unwrapping a fence inside it), then the first
    fenced block anywhere in the text, then the raw text.
    """
    if tag:
        match = _delimiter_pattern(tag).search(text)
        if match:
            inner = match.group(1)
            fenced = FENCED_BLOCK_PATTERN.search(inner)
            yield fenced.group(1) if fenced else inner

    fenced = FENCED_BLOCK_PATTERN.search(text)
    if fenced:
        yield fenced.group(1)

    yield text


def extract_payload(text: str, schema: TypeAdapter[T], tag: str | None = None) -> T:
    """Recover a structured payload from free-text model output.

    Args:
        text: Complete model response.
        schema: Pydantic adapter describing the expected JSON payload.
        tag: Optional delimiter name the prompt asked the model to use.

    Returns:
        The first candidate that validates against ``schema``.

    Raises:
        ExtractionError: If no candidate parses.
    """
    last_error: Exception | None = None
    for candidate in _candidates(text, tag):
        candidate = candidate.strip()
        if not candidate:
            continue
        try:
            return schema.validate_json(candidate)
        except ValidationError as e:
            last_error = e

    preview = text.strip()[:200]
    raise ExtractionError(
        f"No parseable payload in response ({len(text)} chars): {preview!r}"
    ) from last_error


class AnalysisInvoker:
    """Runs one analysis prompt under a retry-and-extract policy.

    Attributes:
        llm_client: Client exposing ``generate`` and ``generate_stream``.
        max_attempts: Total attempts before giving up.
        backoff_base: Delay after attempt ``n`` is ``backoff_base ** n`` seconds.
        stream: Whether to call the streaming variant of the client.
    """

    def __init__(
        self,
        llm_client,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        stream: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.llm_client = llm_client
        if None in (max_attempts, backoff_base, temperature, max_tokens):
            try:
                analysis = load_settings().analysis
                defaults = (
                    analysis.max_attempts,
                    analysis.backoff_base,
                    analysis.temperature,
                    analysis.max_tokens,
                )
            except (ConfigError, OSError):
                defaults = (3, 2.0, ANALYSIS_TEMPERATURE, MAX_TOKENS)
            max_attempts = defaults[0] if max_attempts is None else max_attempts
            backoff_base = defaults[1] if backoff_base is None else backoff_base
            temperature = defaults[2] if temperature is None else temperature
            max_tokens = defaults[3] if max_tokens is None else max_tokens

        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.stream = stream
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return float(self.backoff_base**attempt)

    async def _complete(self, prompt: str, system_prompt: str | None) -> str:
        """Get the full response text, draining the stream if streaming."""
        if not self.stream:
            return await self.llm_client.generate(
                prompt=prompt,
                system_prompt=system_prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )

        chunks: list[str] = []
        async for chunk in self.llm_client.generate_stream(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        ):
            chunks.append(chunk)
        return "".join(chunks)

    async def invoke(
        self,
        prompt: str,
        schema: TypeAdapter[T],
        tag: str | None = None,
        system_prompt: str | None = None,
    ) -> T:
        """Call the model and extract a payload, retrying on any failure.

        Args:
            prompt: User prompt.
            schema: Expected payload shape.
            tag: Delimiter the prompt asked the model to wrap its answer in.
            system_prompt: Optional system prompt.

        Returns:
            The extracted payload.

        Raises:
            Exception: Whatever the final attempt raised, once ``max_attempts``
                attempts have failed.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                text = await self._complete(prompt, system_prompt)
                payload = extract_payload(text, schema, tag)
                if attempt > 1:
                    logger.info(f"Analysis succeeded on attempt {attempt}/{self.max_attempts}")
                return payload
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    f"Analysis failed (attempt {attempt}/{self.max_attempts}): "
                    f"{type(e).__name__}: {e}"
                )
                if attempt >= self.max_attempts:
                    logger.error(f"Analysis gave up after {attempt} attempts")
                    raise
                delay = self.backoff_delay(attempt)
                logger.info(f"Waiting {delay:g} seconds before retry")
                await self._sleep(delay)
