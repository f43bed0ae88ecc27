"""LiteLLM-based LLM client."""

import json
import logging
import time
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path

from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    RateLimitError,
)

from wikisync.config import ConfigError, load_settings
from wikisync.constants import DEFAULT_TEMPERATURE, MAX_TOKENS

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM client errors."""

    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to the LLM provider."""

    pass


class LLMAuthenticationError(LLMError):
    """Raised when authentication with the LLM provider fails."""

    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limited by the LLM provider."""

    pass


def _translate_error(e: Exception) -> LLMError:
    """Map a LiteLLM exception onto the client's own hierarchy."""
    if isinstance(e, AuthenticationError):
        return LLMAuthenticationError(f"Authentication failed: {e}")
    if isinstance(e, RateLimitError):
        return LLMRateLimitError(f"Rate limit exceeded: {e}")
    if isinstance(e, APIConnectionError):
        return LLMConnectionError(f"Connection failed: {e}")
    return LLMError(f"LLM API error: {e}")


class LLMClient:
    """Unified LLM client supporting multiple providers via LiteLLM."""

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str | None = None,
        endpoint: str | None = None,
        log_path: Path | None = None,
    ):
        """Initialize LLM client.

        Args:
            provider: LLM provider (openai, anthropic, google, ollama).
            model: Model name.
            api_key: Optional API key (uses env var if not provided).
            endpoint: Optional custom endpoint (for Ollama).
            log_path: Optional path to JSONL log file for query logging.
        """
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint
        self.log_path = log_path

    def _log_query(
        self,
        system_prompt: str | None,
        prompt: str,
        temperature: float,
        max_tokens: int,
        response: str | None,
        duration_ms: int,
        error: str | None,
    ) -> None:
        """Append a query to the JSONL log file, if one is configured."""
        if not self.log_path:
            return

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "provider": self.provider,
            "model": self.model,
            "request": {
                "system_prompt": system_prompt,
                "prompt": prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            "response": response,
            "duration_ms": duration_ms,
            "error": error,
        }

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            # Query logging is diagnostic only
            logger.warning(f"Could not write LLM query log {self.log_path}: {e}")

    def _get_model_string(self) -> str:
        """Get LiteLLM model string in provider/model format."""
        if self.provider == "openai":
            return self.model  # OpenAI is default
        elif self.provider == "ollama":
            return f"ollama/{self.model}"
        else:
            return f"{self.provider}/{self.model}"

    def _resolve_options(
        self, temperature: float | None, max_tokens: int | None
    ) -> tuple[float, int]:
        """Fill unset sampling options from settings."""
        if temperature is not None and max_tokens is not None:
            return temperature, max_tokens
        try:
            settings = load_settings()
            default_temperature = settings.llm.default_temperature
            default_max_tokens = settings.llm.max_tokens
        except (ConfigError, OSError):
            default_temperature = DEFAULT_TEMPERATURE
            default_max_tokens = MAX_TOKENS
        return (
            default_temperature if temperature is None else temperature,
            default_max_tokens if max_tokens is None else max_tokens,
        )

    def _build_kwargs(
        self,
        prompt: str,
        system_prompt: str | None,
        temperature: float,
        max_tokens: int,
        stream: bool = False,
    ) -> dict:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self._get_model_string(),
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if stream:
            kwargs["stream"] = True

        if self.api_key:
            kwargs["api_key"] = self.api_key

        if self.endpoint and self.provider == "ollama":
            kwargs["api_base"] = self.endpoint

        return kwargs

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Generate completion from prompt.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature.
            max_tokens: Maximum response tokens.

        Returns:
            Generated text response.

        Raises:
            LLMError: Or one of its subclasses, on provider failure.
        """
        temperature, max_tokens = self._resolve_options(temperature, max_tokens)
        kwargs = self._build_kwargs(prompt, system_prompt, temperature, max_tokens)

        start_time = time.perf_counter()
        try:
            response = await acompletion(**kwargs)
        except (AuthenticationError, RateLimitError, APIConnectionError, APIError) as e:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            self._log_query(
                system_prompt,
                prompt,
                temperature,
                max_tokens,
                response=None,
                duration_ms=duration_ms,
                error=str(e),
            )
            raise _translate_error(e) from e

        result: str = str(response.choices[0].message.content or "")
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        self._log_query(
            system_prompt,
            prompt,
            temperature,
            max_tokens,
            response=result,
            duration_ms=duration_ms,
            error=None,
        )
        return result

    async def generate_stream(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncGenerator[str, None]:
        """Generate completion with streaming tokens.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature.
            max_tokens: Maximum response tokens.

        Yields:
            Individual tokens as they are generated.
        """
        temperature, max_tokens = self._resolve_options(temperature, max_tokens)
        kwargs = self._build_kwargs(prompt, system_prompt, temperature, max_tokens, stream=True)

        start_time = time.perf_counter()
        accumulated_tokens: list[str] = []
        error_msg: str | None = None

        try:
            response = await acompletion(**kwargs)
            async for chunk in response:
                content = chunk.choices[0].delta.content
                if content:
                    accumulated_tokens.append(content)
                    yield content
        except (AuthenticationError, RateLimitError, APIConnectionError, APIError) as e:
            error_msg = str(e)
            raise _translate_error(e) from e
        finally:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            self._log_query(
                system_prompt,
                prompt,
                temperature,
                max_tokens,
                response="".join(accumulated_tokens) if accumulated_tokens else None,
                duration_ms=duration_ms,
                error=error_msg,
            )


def create_llm_client() -> LLMClient:
    """Build a client for the configured provider."""
    settings = load_settings()
    return LLMClient(
        provider=settings.active_provider,
        model=settings.active_model,
        api_key=settings.llm_api_key,
        endpoint=settings.llm_endpoint,
        log_path=settings.llm_log_path,
    )
