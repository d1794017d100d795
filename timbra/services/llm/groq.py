"""Groq responder implementation."""

from __future__ import annotations

import time
from typing import Any

import groq
from groq import AsyncGroq

from timbra.config import Settings, get_settings
from timbra.logging_config import get_logger
from timbra.services.llm.exceptions import (
    EmptyResponseError,
    ResponderAuthenticationError,
    ResponderConnectionError,
    ResponderError,
    ResponderRateLimitError,
)
from timbra.services.llm.protocol import Message, Role

logger: Any = get_logger(__name__)

DEFAULT_MAX_TOKENS = 200
DEFAULT_TEMPERATURE = 0.3


class GroqResponder:
    """Groq chat completion responder.

    Holds one shared AsyncGroq client; every call is a stateless request.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
        *,
        system_prompt: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.groq_model
        self._system_prompt = system_prompt or self._settings.system_prompt
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client: AsyncGroq | None = None

    @property
    def client(self) -> AsyncGroq:
        """Lazy initialization of AsyncGroq client."""
        if self._client is None:
            self._client = AsyncGroq(
                api_key=self._settings.groq_api_key.get_secret_value(),
                timeout=self._settings.llm_timeout_s,
                max_retries=1,
            )
        return self._client

    async def respond(self, messages: list[Message]) -> str:
        """Generate the next assistant utterance.

        Raises:
            ResponderRateLimitError: When rate limit exceeded
            ResponderConnectionError: When API unreachable
            ResponderAuthenticationError: When API key invalid
            EmptyResponseError: When the completion has no text
            ResponderError: For other API errors
        """
        api_messages = self.format_messages(messages)
        start_time = time.perf_counter()

        try:
            response = await self.client.chat.completions.create(
                messages=api_messages,  # type: ignore[arg-type]
                model=self._model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )

        except groq.RateLimitError as e:
            logger.warning(f"Groq rate limit hit: {e}")
            raise ResponderRateLimitError(
                "Rate limit exceeded",
                retry_after=self._extract_retry_after(e),
            ) from e

        except groq.APIConnectionError as e:
            logger.error(f"Groq connection error: {e.__cause__}")
            raise ResponderConnectionError("Failed to connect to Groq API") from e

        except groq.AuthenticationError as e:
            logger.error("Groq authentication failed")
            raise ResponderAuthenticationError("Invalid Groq API key") from e

        except groq.APIStatusError as e:
            logger.error(f"Groq API error: {e.status_code} - {e.message}")
            raise ResponderError(f"Groq API error: {e.status_code}") from e

        content = response.choices[0].message.content if response.choices else None
        text = (content or "").strip()
        if not text:
            raise EmptyResponseError("Empty completion from Groq")

        logger.debug(
            f"Groq responded with {len(text)} chars in "
            f"{(time.perf_counter() - start_time) * 1000:.0f}ms"
        )
        return text

    def format_messages(self, messages: list[Message]) -> list[dict[str, str]]:
        """Format messages for Groq API, system prompt first."""
        api_messages = [{"role": Role.SYSTEM.value, "content": self._system_prompt}]

        for msg in messages:
            api_messages.append({
                "role": msg.role.value,
                "content": msg.content,
            })

        return api_messages

    def _extract_retry_after(self, error: groq.RateLimitError) -> float:
        """Extract retry-after from rate limit error."""
        if hasattr(error, "response") and error.response:
            retry_after = error.response.headers.get("retry-after")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return 60.0

    async def close(self) -> None:
        """Close the client connection."""
        if self._client:
            await self._client.close()
            self._client = None
