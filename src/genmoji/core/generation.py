"""Emoji generation pipeline.

:class:`EmojiGenerator` turns a user prompt into a stored emoji:

1. Validate the prompt (required, at most ``max_prompt_length`` characters),
   the locale, and the style.
2. Translate non-English prompts to English.  The English text is what the
   model sees and what the slug is derived from.
3. Derive the base slug; if it is already taken in this locale, add a unique
   suffix.
4. Submit the generation job and poll it.  Every style except ``sticker``
   then goes through background removal, polled with its own attempt limit.
5. Copy the final image to the CDN and insert the database row.

Enrichment
----------
Canonical emojis (``slug == base_slug``) are enriched after the response
has been sent: :meth:`EmojiGenerator.enrich` stores the prompt vector,
translates the original prompt into ``enrichment_locales``, and analyses the
image.  The three steps run concurrently; a failing step is logged and does
not affect the others or the stored row.
"""

from __future__ import annotations

import asyncio
import logging

from genmoji.core.cdn import ImageHost
from genmoji.core.database import EmojiDB
from genmoji.core.errors import ValidationError
from genmoji.core.image_analysis import ImageAnalyzer
from genmoji.core.language import Translator, get_language_info, is_english
from genmoji.core.replicate import DEFAULT_STYLE, STYLES, ReplicateClient
from genmoji.core.slug import create_slug, create_unique_slug
from genmoji.core.vectorize import VectorIndex

logger = logging.getLogger(__name__)

ANALYSIS_LOCALE = "en"


class EmojiGenerator:
    """Coordinates the providers and the store for one generation request."""

    def __init__(
        self,
        db: EmojiDB,
        replicate: ReplicateClient,
        image_host: ImageHost,
        translator: Translator,
        analyzer: ImageAnalyzer,
        vectors: VectorIndex,
        *,
        max_prompt_length: int = 280,
        enrichment_locales: list[str] | None = None,
        generation_max_attempts: int = 30,
        background_removal_max_attempts: int = 15,
    ) -> None:
        self.db = db
        self.replicate = replicate
        self.image_host = image_host
        self.translator = translator
        self.analyzer = analyzer
        self.vectors = vectors
        self.max_prompt_length = max_prompt_length
        self.enrichment_locales = (
            ["zh", "ja", "fr"] if enrichment_locales is None else enrichment_locales
        )
        self.generation_max_attempts = generation_max_attempts
        self.background_removal_max_attempts = background_removal_max_attempts

    def validate_prompt(self, prompt: str | None) -> str:
        """Return the trimmed prompt or raise :class:`ValidationError`.

        The length limit applies to the prompt as sent, surrounding
        whitespace included.
        """
        raw = prompt or ""
        trimmed = raw.strip()
        if not trimmed:
            raise ValidationError("Prompt is required")
        if len(raw) > self.max_prompt_length:
            raise ValidationError("Prompt is too long")
        return trimmed

    async def generate(
        self,
        prompt: str,
        locale: str = "en",
        style: str = DEFAULT_STYLE,
        image: str | None = None,
        ip: str | None = None,
    ) -> dict:
        """Generate, host, and store an emoji.

        Args:
            prompt: Prompt as typed by the user, in any language.
            locale: Locale the emoji is created in.
            style: Generation style, one of :data:`~genmoji.core.replicate.STYLES`.
            image: Optional reference image (URL or data URI).
            ip: Client IP stored for provenance.

        Returns:
            The stored emoji row.

        Raises:
            ValidationError: Empty or oversized prompt, unknown locale or style.
            TranslationError: A non-English prompt could not be translated.
            UpstreamError: Generation, background removal, or upload failed.
        """
        original_prompt = self.validate_prompt(prompt)
        get_language_info(locale)
        if style not in STYLES:
            raise ValidationError(f"Unsupported model: {style}")

        english_prompt = original_prompt
        if not is_english(original_prompt):
            english_prompt = await self.translator.translate_text(original_prompt, "en")
            logger.info(f"Translated prompt {original_prompt!r} -> {english_prompt!r}")

        base_slug = create_slug(english_prompt)
        slug = base_slug
        if self.db.slug_exists(base_slug, locale):
            slug = create_unique_slug(base_slug)

        poll_url = await self.replicate.submit_generation(english_prompt, style, image)
        image_url = await self.replicate.poll_prediction(
            poll_url, max_attempts=self.generation_max_attempts
        )

        if style != "sticker":
            poll_url = await self.replicate.remove_background(image_url)
            image_url = await self.replicate.poll_prediction(
                poll_url, max_attempts=self.background_removal_max_attempts
            )

        hosted_url = await self.image_host.upload_from_url(image_url)

        emoji = self.db.insert_emoji(
            prompt=english_prompt,
            original_prompt=original_prompt,
            base_slug=base_slug,
            slug=slug,
            image_url=hosted_url,
            ip=ip,
            has_reference_image=bool(image),
            locale=locale,
            model=style,
        )
        logger.info(f"Generated emoji {slug} with style {style}")
        return emoji

    @staticmethod
    def needs_enrichment(emoji: dict) -> bool:
        return emoji["slug"] == emoji["base_slug"]

    async def enrich(self, emoji: dict) -> None:
        """Store the vector, translations, and analysis for a new emoji.

        Never raises; failures are logged per step.
        """
        steps = {
            "vector": self.vectors.store_emoji_vector(emoji),
            "translation": self._store_translations(emoji),
            "analysis": self._store_analysis(emoji),
        }
        results = await asyncio.gather(*steps.values(), return_exceptions=True)
        for name, result in zip(steps, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Enrichment step {name} failed for {emoji['slug']}: {result}",
                    exc_info=result,
                )

    async def _store_translations(self, emoji: dict) -> None:
        source = emoji.get("original_prompt") or emoji["prompt"]
        translations = await self.translator.translate_to_multiple_languages(
            source, self.enrichment_locales
        )
        self.db.upsert_translations(emoji["base_slug"], translations)

    async def _store_analysis(self, emoji: dict) -> None:
        analysis = await self.analyzer.analyze_image(emoji["image_url"])
        self.db.save_analysis_result(emoji["slug"], ANALYSIS_LOCALE, analysis)
