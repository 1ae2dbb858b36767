"""Cloudflare Images upload.

Generated images live on the prediction provider only temporarily, so the
final image is copied to Cloudflare Images by URL and served from the
delivery domain afterwards.
"""

from __future__ import annotations

import logging

import httpx

from genmoji.core.config import GenmojiConfig
from genmoji.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class ImageHost:
    """Uploads remote images to Cloudflare Images."""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        delivery_url: str,
        *,
        api_base_url: str = "https://api.cloudflare.com/client/v4",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._upload_url = f"{api_base_url.rstrip('/')}/accounts/{account_id}/images/v1"
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._delivery_url = delivery_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: GenmojiConfig, **kwargs) -> ImageHost:
        return cls(
            config.cloudflare_account_id,
            config.cloudflare_api_token,
            config.cloudflare_images_delivery_url,
            api_base_url=config.cloudflare_api_base_url,
            timeout=config.http_timeout,
            **kwargs,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def upload_from_url(self, image_url: str) -> str:
        """Upload the image at ``image_url`` and return its public URL.

        Raises:
            UpstreamError: The upload request failed or was rejected.
        """
        try:
            # (None, value) sends a plain multipart form field rather than a file.
            response = await self._http.post(
                self._upload_url,
                headers=self._headers,
                files={"url": (None, image_url)},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to upload image to Cloudflare Images: {e}") from e

        if response.is_error:
            raise UpstreamError("Failed to upload image to Cloudflare Images")

        result = response.json()
        if not result.get("success"):
            errors = result.get("errors") or [{}]
            raise UpstreamError(f"Failed to upload image: {errors[0].get('message')}")

        image_id = result["result"]["id"]
        logger.info(f"Uploaded {image_url} to Cloudflare Images as {image_id}")
        return f"{self._delivery_url}/{image_id}/public"
