"""``/translation`` routes: backfill prompt translations in batches.

A client drives the backfill by calling ``POST /translation/batch/{locale}``
repeatedly, passing back the ``last_processed_id`` from each response, until
the status is ``completed``.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends

from genmoji.api.dependencies import get_db, get_translator
from genmoji.api.models import BatchTranslateRequest, success
from genmoji.core.database import EmojiDB
from genmoji.core.language import Translator, get_language_info

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/progress/{locale}")
async def translation_progress(locale: str, db: EmojiDB = Depends(get_db)) -> dict:
    get_language_info(locale)
    return success(db.get_translation_progress(locale))


@router.post("/batch/{locale}")
async def translate_batch(
    locale: str,
    req: BatchTranslateRequest,
    db: EmojiDB = Depends(get_db),
    translator: Translator = Depends(get_translator),
) -> dict:
    """Translate the next page of untranslated prompts into ``locale``.

    Rows sharing a base slug are translated once.  A failed translation
    fails the whole batch, so it can be retried from the same
    ``last_processed_id``.
    """
    get_language_info(locale)
    emojis = db.get_untranslated_emojis(locale, req.batch_size, req.last_processed_id)
    if not emojis:
        return success({"status": "completed", "message": "No more emojis to translate"})

    prompts: dict[str, str] = {}
    for emoji in emojis:
        prompts.setdefault(emoji["base_slug"], emoji["prompt"])

    translated = await asyncio.gather(
        *(translator.translate_text(prompt, locale) for prompt in prompts.values())
    )
    db.batch_insert_translations(
        [(base_slug, locale, text) for base_slug, text in zip(prompts, translated)]
    )
    logger.info(f"Translated {len(prompts)} prompts into {locale}")

    return success(
        {
            "status": "in_progress",
            "processed": len(prompts),
            "last_processed_id": emojis[-1]["id"],
            "progress": db.get_translation_progress(locale),
        }
    )
