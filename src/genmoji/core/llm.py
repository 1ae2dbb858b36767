"""Factory for the OpenAI-compatible chat-completion client.

Translation and image analysis both talk to the same provider through the
AI gateway, so they share one :class:`openai.AsyncOpenAI` construction path.
"""

from __future__ import annotations

import httpx
from openai import AsyncOpenAI

from genmoji.core.config import GenmojiConfig


def create_llm_client(
    config: GenmojiConfig,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Build an async chat-completion client from configuration.

    Args:
        config: Application configuration (API key and base URL).
        http_client: Optional pre-built httpx client, used by tests to inject
            a mock transport.

    Returns:
        Configured :class:`AsyncOpenAI` instance.
    """
    return AsyncOpenAI(
        api_key=config.xai_api_key or "missing-api-key",
        base_url=config.resolved_llm_base_url,
        timeout=config.http_timeout,
        max_retries=1,
        http_client=http_client,
    )
