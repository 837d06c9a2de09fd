"""
Anthropic streaming client.

Connects to Anthropic Messages API, streams response text chunks.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import anthropic

logger = logging.getLogger(__name__)


class AnthropicClient:
    """Streams responses from Anthropic Messages API."""

    def __init__(self, api_key: str):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
        """
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self._last_usage: dict[str, int] | None = None

    async def stream(
        self,
        messages: list[dict[str, Any]],
        system: str | list[dict[str, Any]],
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 8192,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream response text from Anthropic API.

        Args:
            messages: Messages array for the conversation
            system: System prompt (string or list of content blocks)
            model: Model identifier
            max_tokens: Maximum tokens to generate

        Yields:
            Text chunks as they arrive
        """
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": messages,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        async with self.client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                yield text

            final_message = await stream.get_final_message()
            if final_message and final_message.usage:
                self._last_usage = {
                    "input_tokens": final_message.usage.input_tokens,
                    "output_tokens": final_message.usage.output_tokens,
                }
                logger.info(
                    "anthropic: model=%s input_tokens=%d output_tokens=%d",
                    model,
                    final_message.usage.input_tokens,
                    final_message.usage.output_tokens,
                )

    def get_usage_stats(self) -> dict[str, int] | None:
        """Usage of the last completed stream, if any."""
        return self._last_usage
