"""Language detection and prompt translation.

English detection is a cheap character-ratio heuristic; anything below the
threshold is sent through the chat-completion provider before a slug is
derived from it.  Multi-locale fan-out is used by the enrichment step and
never fails as a whole: a locale whose translation errors falls back to the
source text.
"""

from __future__ import annotations

import asyncio
import logging
import re

from openai import AsyncOpenAI, OpenAIError

from genmoji.core.errors import TranslationError, UnsupportedLocaleError

logger = logging.getLogger(__name__)

ENGLISH_RATIO_THRESHOLD = 0.7

LANGUAGE_MAP: dict[str, dict[str, str]] = {
    "zh": {"code": "zh", "name": "Chinese (Simplified)"},
    "zh-TW": {"code": "zh", "name": "Chinese (Traditional)"},
    "en": {"code": "en", "name": "English"},
    "ja": {"code": "ja", "name": "Japanese"},
    "ko": {"code": "ko", "name": "Korean"},
    "es": {"code": "es", "name": "Spanish"},
    "fr": {"code": "fr", "name": "French"},
    "de": {"code": "de", "name": "German"},
    "it": {"code": "it", "name": "Italian"},
    "ru": {"code": "ru", "name": "Russian"},
    "pt": {"code": "pt", "name": "Portuguese"},
    "vi": {"code": "vi", "name": "Vietnamese"},
    "th": {"code": "th", "name": "Thai"},
    "id": {"code": "id", "name": "Indonesian"},
    "ms": {"code": "ms", "name": "Malay"},
    "ar": {"code": "ar", "name": "Arabic"},
    "hi": {"code": "hi", "name": "Hindi"},
}

_ENGLISH_CHARS = re.compile(r"[A-Za-z0-9\s]")

TRANSLATION_SYSTEM_PROMPT = (
    "You are a professional translator. Translate the following text to {language}. "
    "Keep it concise and suitable for a sticker description. Only return the translated "
    "text without any explanations or additional content."
)


def get_language_info(locale: str) -> dict[str, str]:
    """Return the ``{code, name}`` entry for ``locale``.

    Raises:
        UnsupportedLocaleError: If the locale is not in :data:`LANGUAGE_MAP`.
    """
    try:
        return LANGUAGE_MAP[locale]
    except KeyError:
        raise UnsupportedLocaleError(locale) from None


def is_english(text: str) -> bool:
    """Return ``True`` when at least 70% of characters are ASCII letters, digits, or whitespace."""
    if not text:
        return True
    english_chars = len(_ENGLISH_CHARS.findall(text))
    return english_chars / len(text) >= ENGLISH_RATIO_THRESHOLD


class Translator:
    """Chat-completion backed translator."""

    def __init__(self, client: AsyncOpenAI, model: str, temperature: float = 0.3) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature

    async def translate_text(self, text: str, target_locale: str) -> str:
        """Translate ``text`` into the language of ``target_locale``.

        Args:
            text: Source text.
            target_locale: Locale key from :data:`LANGUAGE_MAP`.

        Returns:
            The translated text, stripped of surrounding whitespace.

        Raises:
            UnsupportedLocaleError: Unknown target locale.
            TranslationError: The provider failed or returned no content.
        """
        language = get_language_info(target_locale)["name"]

        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {
                        "role": "system",
                        "content": TRANSLATION_SYSTEM_PROMPT.format(language=language),
                    },
                    {"role": "user", "content": text},
                ],
                temperature=self._temperature,
                stream=False,
            )
        except OpenAIError as e:
            logger.error(f"Translation to {language} failed for {text!r}: {e}")
            raise TranslationError(f"Translation failed: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content or not content.strip():
            raise TranslationError("Invalid translation response format")

        return content.strip()

    async def translate_to_multiple_languages(
        self, text: str, target_locales: list[str]
    ) -> dict[str, str]:
        """Translate ``text`` into every locale concurrently.

        A locale whose translation fails maps to the original ``text``.

        Returns:
            Mapping of locale to translated text, in ``target_locales`` order.
        """

        async def _translate(locale: str) -> tuple[str, str]:
            try:
                return locale, await self.translate_text(text, locale)
            except (TranslationError, UnsupportedLocaleError) as e:
                logger.warning(f"Falling back to source text for locale {locale}: {e}")
                return locale, text

        results = await asyncio.gather(*(_translate(locale) for locale in target_locales))
        return dict(results)
