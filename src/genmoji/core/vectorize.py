"""Prompt embeddings and nearest-neighbour search.

Each canonical emoji (``slug == base_slug``) gets one vector, keyed by its
database id, in a Cloudflare Vectorize index.  Embeddings come from a
Workers AI text-embedding model.  Search results are re-read from
:class:`~genmoji.core.database.EmojiDB` so that hidden rows are dropped and
prompts are localized.

Search is a convenience feature: any provider error is logged and turned
into an empty result list.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from genmoji.core.config import GenmojiConfig
from genmoji.core.database import EmojiDB
from genmoji.core.errors import UpstreamError

logger = logging.getLogger(__name__)

MAX_TOP_K = 20


class VectorIndex:
    """Workers AI embeddings plus a Vectorize index, hydrated from SQLite."""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        index_name: str,
        embedding_model: str,
        db: EmojiDB,
        *,
        api_base_url: str = "https://api.cloudflare.com/client/v4",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        account_url = f"{api_base_url.rstrip('/')}/accounts/{account_id}"
        self._embedding_url = f"{account_url}/ai/run/{embedding_model}"
        self._index_url = f"{account_url}/vectorize/v2/indexes/{index_name}"
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self.db = db

    @classmethod
    def from_config(cls, config: GenmojiConfig, db: EmojiDB, **kwargs: Any) -> VectorIndex:
        return cls(
            config.cloudflare_account_id,
            config.cloudflare_api_token,
            config.vectorize_index,
            config.embedding_model,
            db,
            api_base_url=config.cloudflare_api_base_url,
            timeout=config.http_timeout,
            **kwargs,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post(self, url: str, headers: dict[str, str] | None = None, **kwargs: Any) -> Any:
        try:
            response = await self._http.post(
                url, headers={**self._headers, **(headers or {})}, **kwargs
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Vector request failed: {e}") from e
        if response.is_error:
            raise UpstreamError(f"Vector request failed with {response.status_code}")
        try:
            return response.json().get("result") or {}
        except ValueError as e:
            raise UpstreamError("Vector response was not valid JSON") from e

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` with the configured model, one vector per text."""
        result = await self._post(self._embedding_url, json={"text": texts})
        embeddings = result.get("data")
        if not embeddings or len(embeddings) != len(texts):
            raise UpstreamError("Embedding response did not contain one vector per text")
        return embeddings

    async def store_emoji_vector(self, emoji: dict) -> None:
        """Index the prompt of a stored emoji under its database id.

        Args:
            emoji: Row returned by :meth:`EmojiDB.insert_emoji`.
        """
        [values] = await self.generate_embeddings([emoji["prompt"]])
        record = {
            "id": str(emoji["id"]),
            "values": values,
            "metadata": {
                "prompt": emoji["prompt"],
                "slug": emoji["slug"],
                "image_url": emoji["image_url"],
                "created_at": emoji["created_at"],
            },
        }
        await self._post(
            f"{self._index_url}/insert",
            content=json.dumps(record) + "\n",
            headers={"Content-Type": "application/x-ndjson"},
        )
        logger.info(f"Stored vector for emoji {emoji['slug']} (id {emoji['id']})")

    async def search_emojis(
        self,
        prompt: str,
        limit: int,
        offset: int = 0,
        exclude_id: int | None = None,
        locale: str = "en",
    ) -> list[dict]:
        """Find emojis whose prompts are closest to ``prompt``.

        Args:
            prompt: Query text.
            limit: Page size.
            offset: Matches to skip.
            exclude_id: Emoji id left out of the results (the emoji a
                "related" query starts from).
            locale: Locale used for ``localized_prompt``.

        Returns:
            Public emoji rows ordered by descending similarity, each with a
            ``score``.  Empty on any provider error.
        """
        top_k = min(limit + offset + (1 if exclude_id is not None else 0), MAX_TOP_K)
        try:
            [vector] = await self.generate_embeddings([prompt])
            result = await self._post(
                f"{self._index_url}/query",
                json={"vector": vector, "topK": top_k, "returnMetadata": "all"},
            )
        except UpstreamError as e:
            logger.error(f"Vector search failed for {prompt!r}: {e.message}", exc_info=True)
            return []

        matches = [
            match
            for match in result.get("matches") or []
            if exclude_id is None or str(match.get("id")) != str(exclude_id)
        ][offset : offset + limit]

        scores: dict[int, float] = {}
        for match in matches:
            try:
                scores[int(match["id"])] = float(match.get("score") or 0.0)
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping vector match with unusable id: {match!r}")

        emojis = self.db.get_emojis_by_ids(list(scores), locale)
        for emoji in emojis:
            emoji["score"] = scores[emoji["id"]]
        return sorted(emojis, key=lambda emoji: emoji["score"], reverse=True)
