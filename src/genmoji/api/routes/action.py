"""``/action`` routes: likes, votes, the action log, reports, and stats.

Report moderation routes are registered before the ``/{slug}`` routes so
that ``/reports`` is never captured as a slug.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request

from genmoji.api.dependencies import get_client_ip, get_db, get_stats
from genmoji.api.models import (
    ActionRequest,
    LikeRequest,
    ReportStatusRequest,
    VoteRequest,
    success,
)
from genmoji.core.database import EmojiDB
from genmoji.core.errors import NotFoundError, ValidationError
from genmoji.core.stats import ReportStatus, StatsStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_emoji(db: EmojiDB, slug: str, locale: str) -> dict:
    emoji = db.get_emoji_by_slug(slug, locale)
    if not emoji:
        raise NotFoundError("Emoji not found")
    return emoji


# ---------------------------------------------------------------------------
# Moderation.
# ---------------------------------------------------------------------------


@router.get("/reports")
async def list_reports(
    status: ReportStatus | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    stats: StatsStore = Depends(get_stats),
) -> dict:
    """List moderation reports, newest first."""
    return success(stats.list_reports(status, limit))


@router.post("/reports/{report_id}/status")
async def update_report_status(
    report_id: int,
    req: ReportStatusRequest,
    stats: StatsStore = Depends(get_stats),
) -> dict:
    if not stats.update_report_status(report_id, req.status):
        raise NotFoundError("Report not found")
    return success({"id": report_id, "status": req.status})


# ---------------------------------------------------------------------------
# Likes and votes.
# ---------------------------------------------------------------------------


@router.post("/{slug}/like")
async def toggle_like(
    slug: str,
    req: LikeRequest,
    request: Request,
    db: EmojiDB = Depends(get_db),
) -> dict:
    """Flip the caller's like on an emoji."""
    _require_emoji(db, slug, req.locale)
    liked = db.toggle_like(slug, req.locale, get_client_ip(request), req.user_id)
    return success({"liked": liked})


@router.get("/{slug}/like-status")
async def like_status(
    slug: str,
    request: Request,
    user_id: str | None = None,
    db: EmojiDB = Depends(get_db),
) -> dict:
    return success({"liked": db.get_like_status(slug, get_client_ip(request), user_id)})


@router.post("/{slug}/vote")
async def vote(
    slug: str,
    req: VoteRequest,
    request: Request,
    db: EmojiDB = Depends(get_db),
) -> dict:
    """Cast or switch the caller's up/down vote.

    ``changed`` is ``False`` when the caller repeated their current vote.
    """
    _require_emoji(db, slug, req.locale)
    changed = db.add_vote(slug, req.locale, get_client_ip(request), req.vote_type)
    return success({"changed": changed, **db.get_vote_stats(slug, req.locale)})


@router.get("/{slug}/votes")
async def vote_stats(slug: str, locale: str = "en", db: EmojiDB = Depends(get_db)) -> dict:
    return success(db.get_vote_stats(slug, locale))


# ---------------------------------------------------------------------------
# Action log and stats.
# ---------------------------------------------------------------------------


@router.post("/{slug}")
async def record_action(
    slug: str,
    req: ActionRequest,
    request: Request,
    db: EmojiDB = Depends(get_db),
    stats: StatsStore = Depends(get_stats),
) -> dict:
    """Append an action to the log.

    - ``report`` with a reason also queues a moderation report.
    - ``rate`` needs ``details.score`` and is accepted once per user.
    - ``download`` and ``copy`` answer with the image URL.
    """
    emoji = _require_emoji(db, slug, req.locale)
    user_ip = get_client_ip(request)
    details = req.details.model_dump(exclude_none=True) if req.details else None

    if req.action_type == "rate":
        if not details or "score" not in details:
            raise ValidationError("Rating score is required")
        if stats.has_user_action(slug, req.locale, user_ip, "rate", req.user_id):
            raise ValidationError("Emoji already rated")

    if req.action_type == "report" and details and details.get("reason"):
        report_id = stats.record_report(
            slug,
            req.locale,
            details["reason"],
            details.get("description"),
            user_id=req.user_id,
            user_ip=user_ip,
            action_details=details,
        )
        logger.info(f"Report {report_id} queued for {slug}: {details['reason']}")
    else:
        stats.record_action(slug, req.locale, user_ip, req.action_type, req.user_id, details)

    if req.action_type in ("download", "copy"):
        return success({"url": emoji["image_url"]})
    return success()


@router.get("/{slug}/stats")
async def get_emoji_stats(
    slug: str,
    locale: str = "en",
    stats: StatsStore = Depends(get_stats),
) -> dict:
    """Aggregated counters for an emoji, as of its last recomputation."""
    row = stats.get_emoji_stats(slug, locale)
    if not row:
        raise NotFoundError("Stats not found")
    return success(row)
