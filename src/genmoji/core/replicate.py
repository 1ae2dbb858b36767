"""Replicate prediction orchestration for emoji generation.

This module owns every call to the asynchronous prediction API:

- **Payload construction** for the three generation styles
  (:data:`STYLES`), each pinned to a specific model version.
- **Submission** of generation and background-removal jobs.  The provider
  answers immediately with a prediction resource; its ``urls.get`` link is
  what callers poll.
- **Polling** until the prediction reaches a terminal status.

Polling Contract
----------------
:meth:`ReplicateClient.poll_prediction` distinguishes three outcomes:

========== =============================================================
Status     Behaviour
========== =============================================================
succeeded  Return the first output URL (``output`` may be a list or str).
failed     Raise :class:`PredictionFailedError` at once; never re-poll.
canceled   Same as ``failed``.
(other)    Sleep and poll again: ``initial_delay`` before the first retry,
           ``interval`` before every later one.
========== =============================================================

When ``max_attempts`` checks have been made without a terminal status,
:class:`PredictionTimeoutError` is raised.

Usage
-----
::

    client = ReplicateClient.from_config(config)
    poll_url = await client.submit_generation("a happy cat", style="gemoji")
    image_url = await client.poll_prediction(poll_url)
    await client.aclose()
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, Literal

import httpx

from genmoji.core.config import GenmojiConfig
from genmoji.core.errors import (
    PredictionFailedError,
    PredictionTimeoutError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

GenerationStyle = Literal["gemoji", "sticker", "mascot"]
STYLES: tuple[str, ...] = ("gemoji", "sticker", "mascot")
DEFAULT_STYLE: GenerationStyle = "gemoji"

# ---------------------------------------------------------------------------
# Pinned model versions.
# ---------------------------------------------------------------------------
EMOJI_VERSION = "dee76b5afde21b0f01ed7925f0665b7e879c50ee718c5f78a9d38e04d523cc5e"
STICKER_VERSION = "4acb778eb059772225ec213948f0660867b2e03f277448f18cf1800b96a65a1a"
STICKER_REFERENCE_VERSION = "764d4827ea159608a07cdde8ddf1c6000019627515eb02b6b449695fd547e5ef"
MASCOT_VERSION = "4acb778eb059772225ec213948f0660867b2e03f277448f18cf1800b96a65a1a"
REMOVE_BG_VERSION = "a029dff38972b5fda4ec5d75d7d1cd25aeff621d2cf4946a41055d7db66b80bc"

TERMINAL_FAILURE_STATUSES = frozenset({"failed", "canceled"})
MAX_SEED = 1_000_000


def _random_seed() -> int:
    return random.randrange(MAX_SEED)


def build_prediction_payload(
    prompt: str,
    style: str = DEFAULT_STYLE,
    image: str | None = None,
    seed: int | None = None,
) -> dict[str, Any]:
    """Build the prediction request body for a generation style.

    Args:
        prompt: English prompt text.
        style: One of :data:`STYLES`.  Unknown styles use the emoji model.
        image: Optional reference image (URL or data URI).
        seed: Fixed seed; a random one is chosen when omitted.

    Returns:
        JSON-serialisable ``{"version": ..., "input": {...}}`` dictionary.
    """
    seed = _random_seed() if seed is None else seed

    if style == "sticker":
        if image:
            return {
                "version": STICKER_REFERENCE_VERSION,
                "input": {
                    "prompt": prompt,
                    "steps": 20,
                    "width": 1024,
                    "height": 1024,
                    "upscale": False,
                    "upscale_steps": 10,
                    "negative_prompt": "",
                    "prompt_strength": 4.5,
                    "ip_adapter_noise": 0.5,
                    "ip_adapter_weight": 0.2,
                    "instant_id_strength": 0.8,
                    "image": image,
                },
            }
        return {
            "version": STICKER_VERSION,
            "input": {
                "prompt": prompt,
                "num_outputs": 1,
                "width": 1024,
                "height": 1024,
                "refine": "no_refiner",
                "scheduler": "K_EULER",
                "negative_prompt": "bubbles",
                "num_inference_steps": 20,
                "output_quality": 100,
                "upscale": True,
                "upscale_steps": 10,
                "seed": seed,
            },
        }

    if style == "mascot":
        return {
            "version": MASCOT_VERSION,
            "input": {
                "prompt": f"In the style of TOK, {prompt}",
                "num_outputs": 1,
                "width": 1024,
                "height": 1024,
                "lora_scale": 0.6,
                "guidance_scale": 7.5,
                "high_noise_frac": 0.8,
                "prompt_strength": 0.8,
                "negative_prompt": "bubbles",
                "num_inference_steps": 40,
                "seed": seed,
            },
        }

    payload: dict[str, Any] = {
        "version": EMOJI_VERSION,
        "input": {
            "prompt": f"A TOK emoji of a {prompt}",
            "num_outputs": 1,
            "width": 768,
            "height": 768,
            "negative_prompt": "racist, xenophobic, antisemitic, islamophobic, bigoted",
            "num_inference_steps": 30,
            "seed": seed,
        },
    }
    if image:
        payload["input"]["image"] = image
    return payload


def _first_output(output: Any) -> str | None:
    if isinstance(output, list):
        return output[0] if output else None
    return output or None


class ReplicateClient:
    """Async client for the prediction API.

    Attributes:
        _http: Shared :class:`httpx.AsyncClient`.
        _base_url: API root (``.../predictions`` is appended).
        _sleep: Awaitable sleep used between polls; injectable for tests.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        initial_delay: float = 6.0,
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        timeout: float = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._initial_delay = initial_delay
        self._interval = interval
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: GenmojiConfig, **kwargs: Any) -> ReplicateClient:
        return cls(
            config.replicate_api_token,
            config.resolved_replicate_base_url,
            initial_delay=config.poll_initial_delay,
            interval=config.poll_interval,
            timeout=config.http_timeout,
            **kwargs,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _create_prediction(self, body: dict[str, Any]) -> str:
        try:
            response = await self._http.post(
                f"{self._base_url}/predictions",
                headers=self._headers,
                json=body,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Gateway error: {e}") from e

        if response.is_error:
            raise UpstreamError(f"Gateway error: {response.text}")

        data = response.json()
        poll_url = (data.get("urls") or {}).get("get")
        if not poll_url:
            raise UpstreamError("Gateway error: prediction response has no poll URL")
        logger.info(f"Created prediction {data.get('id')} (version {body['version'][:12]})")
        return poll_url

    async def submit_generation(
        self,
        prompt: str,
        style: str = DEFAULT_STYLE,
        image: str | None = None,
        seed: int | None = None,
    ) -> str:
        """Submit a generation job and return its poll URL."""
        return await self._create_prediction(build_prediction_payload(prompt, style, image, seed))

    async def remove_background(self, image_url: str) -> str:
        """Submit a background-removal job for ``image_url`` and return its poll URL."""
        try:
            return await self._create_prediction(
                {"version": REMOVE_BG_VERSION, "input": {"image": image_url}}
            )
        except UpstreamError as e:
            raise UpstreamError(f"Failed to start background removal: {e.message}") from e

    async def poll_prediction(self, url: str, max_attempts: int = 30) -> str:
        """Poll ``url`` until the prediction succeeds, fails, or times out.

        Args:
            url: Prediction ``urls.get`` link.
            max_attempts: Maximum number of status checks.

        Returns:
            The first output URL.

        Raises:
            PredictionFailedError: Terminal failure status; no further polls.
            PredictionTimeoutError: ``max_attempts`` checks without a result.
            UpstreamError: The status request itself failed.
        """
        for attempt in range(max_attempts):
            try:
                response = await self._http.get(url, headers=self._headers)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise UpstreamError(f"Prediction status request failed: {e}") from e

            result = response.json()
            status = result.get("status")
            output = _first_output(result.get("output"))

            if status == "succeeded" and output:
                return output

            if status in TERMINAL_FAILURE_STATUSES:
                logger.warning(f"Prediction {result.get('id')} {status}: {result.get('error')}")
                raise PredictionFailedError(status, result.get("error"))

            if attempt < max_attempts - 1:
                await self._sleep(self._initial_delay if attempt == 0 else self._interval)

        raise PredictionTimeoutError(max_attempts)
