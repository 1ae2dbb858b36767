"""``/genmoji`` routes: fetch, list, search, and generate emojis."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from genmoji.api.dependencies import get_client_ip, get_db, get_generator, get_vectors
from genmoji.api.models import GenerateRequest, success
from genmoji.core.database import EmojiDB
from genmoji.core.errors import NotFoundError, ValidationError
from genmoji.core.generation import EmojiGenerator
from genmoji.core.image_analysis import EmojiCategory
from genmoji.core.vectorize import VectorIndex

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/by-slug/{slug}")
async def get_by_slug(
    slug: str,
    locale: str = "en",
    db: EmojiDB = Depends(get_db),
) -> dict:
    """Return one emoji with its localized prompt and analysis details."""
    emoji = db.get_emoji_by_slug(slug, locale)
    if not emoji:
        raise NotFoundError("Emoji not found")
    return success(emoji)


@router.get("/by-base-slug/{base_slug}")
async def get_by_base_slug(
    base_slug: str,
    locale: str = "en",
    limit: int = Query(default=20, ge=1),
    offset: int = Query(default=0, ge=0),
    db: EmojiDB = Depends(get_db),
) -> dict:
    """List every generation of the same base slug, newest first."""
    return success(db.get_emojis_by_base_slug(base_slug, min(limit, 50), offset, locale))


@router.get("/related/{slug}")
async def get_related(
    slug: str,
    locale: str = "en",
    limit: int = Query(default=6, ge=1),
    db: EmojiDB = Depends(get_db),
    vectors: VectorIndex = Depends(get_vectors),
) -> dict:
    """Nearest neighbours of an emoji's prompt, excluding the emoji itself."""
    emoji = db.get_emoji_row(slug)
    if not emoji:
        raise NotFoundError("Emoji not found")

    related = await vectors.search_emojis(
        emoji["prompt"],
        min(limit, 30),
        offset=0,
        exclude_id=emoji["id"],
        locale=locale,
    )
    return success(related)


@router.get("/list")
async def list_emojis(
    locale: str = "en",
    limit: int = Query(default=8, ge=1),
    offset: int = Query(default=0, ge=0),
    sort: Literal["latest", "popular", "quality"] = "latest",
    model: str | None = None,
    category: EmojiCategory | None = None,
    color: str | None = None,
    db: EmojiDB = Depends(get_db),
) -> dict:
    """Paginated public catalogue with optional style, category, and colour filters."""
    emojis = db.list_emojis(
        limit=min(limit, 50),
        offset=offset,
        sort=sort,
        locale=locale,
        model=model,
        category=category,
        color=color,
    )
    return success(emojis)


@router.get("/search")
async def search(
    q: str | None = None,
    locale: str = "en",
    limit: int = Query(default=8, ge=1),
    offset: int = Query(default=0, ge=0),
    vectors: VectorIndex = Depends(get_vectors),
) -> dict:
    """Semantic search over prompts."""
    if not q or not q.strip():
        raise ValidationError("Search query is required")
    return success(await vectors.search_emojis(q.strip(), min(limit, 50), offset, locale=locale))


@router.get("/groups")
async def get_groups(locale: str = "en", db: EmojiDB = Depends(get_db)) -> dict:
    """Emojis grouped by analysed category, with a few samples each."""
    return success(db.get_emoji_groups(locale))


@router.get("/keywords/search")
async def search_by_keywords(
    keywords: str | None = None,
    locale: str = "en",
    limit: int = Query(default=20, ge=1),
    offset: int = Query(default=0, ge=0),
    db: EmojiDB = Depends(get_db),
) -> dict:
    """Emojis whose analysis keywords overlap a comma-separated keyword list."""
    terms = [k.strip().lower() for k in (keywords or "").split(",") if k.strip()]
    if not terms:
        raise ValidationError("At least one keyword is required")
    return success(db.search_emojis_by_keywords(terms, locale, min(limit, 50), offset))


@router.get("/keywords/popular")
async def popular_keywords(
    locale: str = "en",
    limit: int = Query(default=20, ge=1),
    db: EmojiDB = Depends(get_db),
) -> dict:
    return success(db.get_popular_keywords(locale, min(limit, 100)))


@router.post("/generate")
async def generate(
    req: GenerateRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    generator: EmojiGenerator = Depends(get_generator),
) -> dict:
    """Generate an emoji from a prompt.

    The response is sent as soon as the emoji is stored.  For a new base
    slug, vector indexing, translation, and image analysis are scheduled as
    a background task that runs after the response.

    Raises:
        ValidationError: 400 for a missing or oversized prompt or an unknown
            locale.
        UpstreamError: 500 when translation, generation, background
            removal, or upload fails.
    """
    emoji = await generator.generate(
        req.prompt,
        locale=req.locale,
        style=req.model,
        image=req.image,
        ip=get_client_ip(request),
    )

    if generator.needs_enrichment(emoji):
        background_tasks.add_task(generator.enrich, emoji)

    return success(
        {
            "id": emoji["id"],
            "prompt": emoji["prompt"],
            "original_prompt": emoji["original_prompt"],
            "slug": emoji["slug"],
            "base_slug": emoji["base_slug"],
            "image_url": emoji["image_url"],
            "has_reference_image": emoji["has_reference_image"],
            "locale": emoji["locale"],
            "model": emoji["model"],
            "created_at": emoji["created_at"],
        }
    )
