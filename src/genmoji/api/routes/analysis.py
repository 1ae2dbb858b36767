"""``/analysis`` routes: run image analysis on demand or over stored emojis."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends

from genmoji.api.dependencies import get_analyzer, get_db, get_stats
from genmoji.api.models import (
    BATCH_LIMITS,
    AnalyzeRequest,
    BatchAnalyzeRequest,
    ProcessLocalRequest,
    success,
)
from genmoji.core.database import EmojiDB
from genmoji.core.errors import AnalysisError, ValidationError
from genmoji.core.image_analysis import ImageAnalyzer
from genmoji.core.stats import StatsStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _summary(results: list[dict], batch_size: int) -> dict:
    total = len(results)
    successful = sum(1 for r in results if r["status"] == "success")
    return {
        "total": total,
        "successful": successful,
        "failed": total - successful,
        "success_rate": f"{successful / total * 100:.1f}%" if total else "0.0%",
        "batch_size": batch_size,
    }


async def _analyze_one(analyzer: ImageAnalyzer, image_url: str) -> dict:
    try:
        analysis = await analyzer.analyze_image(image_url)
    except AnalysisError as e:
        logger.warning(f"Analysis failed for {image_url}: {e.message}")
        return {"status": "error", "error": e.message}
    return {"status": "success", "data": analysis.model_dump(by_alias=True)}


@router.post("/analyze")
async def analyze(
    req: AnalyzeRequest,
    analyzer: ImageAnalyzer = Depends(get_analyzer),
) -> dict:
    """Analyze one image without storing the result."""
    analysis = await analyzer.analyze_image(req.image_url)
    return success(analysis.model_dump(by_alias=True))


@router.post("/batch")
async def analyze_batch(
    req: BatchAnalyzeRequest,
    analyzer: ImageAnalyzer = Depends(get_analyzer),
) -> dict:
    """Analyze up to ``batch_size`` images concurrently; per-image failures are reported inline."""
    if len(req.image_urls) > req.batch_size:
        raise ValidationError(f"Batch size limit exceeded. Maximum allowed: {req.batch_size}")

    outcomes = await asyncio.gather(*(_analyze_one(analyzer, url) for url in req.image_urls))
    results = [{"image_url": url, **outcome} for url, outcome in zip(req.image_urls, outcomes)]
    return success(
        {
            "status": "success",
            "summary": _summary(results, req.batch_size),
            "results": results,
        }
    )


@router.post("/process/local")
async def process_local(
    req: ProcessLocalRequest,
    db: EmojiDB = Depends(get_db),
    analyzer: ImageAnalyzer = Depends(get_analyzer),
) -> dict:
    """Analyze and store the next page of stored emojis that lack a category.

    Call repeatedly with the returned ``last_processed_id`` until the status
    is ``completed``.
    """
    emojis = db.get_unanalyzed_emojis(req.batch_size, req.last_processed_id or 0)
    if not emojis:
        return success(
            {
                "status": "completed",
                "message": "No more emojis to analyze",
                "progress": db.get_analysis_progress(),
                "limits": BATCH_LIMITS,
            }
        )

    async def _process(emoji: dict) -> dict:
        try:
            analysis = await analyzer.analyze_image(emoji["image_url"])
        except AnalysisError as e:
            logger.warning(f"Analysis failed for emoji {emoji['slug']}: {e.message}")
            return {"slug": emoji["slug"], "status": "error", "error": e.message}
        db.save_analysis_result(emoji["slug"], req.locale, analysis)
        return {
            "slug": emoji["slug"],
            "status": "success",
            "data": analysis.model_dump(by_alias=True),
        }

    results = await asyncio.gather(*(_process(emoji) for emoji in emojis))
    summary = _summary(results, req.batch_size)
    summary["last_processed_id"] = emojis[-1]["id"]

    return success(
        {
            "status": "in_progress",
            "summary": summary,
            "progress": db.get_analysis_progress(),
            "limits": BATCH_LIMITS,
            "results": results,
        }
    )


@router.get("/progress")
async def analysis_progress(db: EmojiDB = Depends(get_db)) -> dict:
    return success(db.get_analysis_progress())


@router.post("/update-stats")
async def update_stats(stats: StatsStore = Depends(get_stats)) -> dict:
    """Recompute stats for every emoji that has actions."""
    updated = stats.update_all_emoji_stats()
    return success({"updated": updated, "message": "Successfully updated statistics globally"})
