"""Structured image analysis through a vision-capable chat model.

The provider is asked to answer with JSON matching :data:`ANALYSIS_JSON_SCHEMA`
and the reply is validated against :class:`ImageAnalysis`.  Example reply::

    {
      "category": "animals_nature",
      "primaryColor": "grass green",
      "qualityScore": 4,
      "subjectCount": 2,
      "keywords": ["cute", "panda", "bamboo", "eating"]
    }
"""

from __future__ import annotations

import logging
from typing import Literal, get_args

import pydantic
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, Field

from genmoji.core.errors import AnalysisError

logger = logging.getLogger(__name__)

EmojiCategory = Literal[
    "smileys_emotion",
    "people_body",
    "animals_nature",
    "food_drink",
    "travel_places",
    "activities",
    "objects",
    "symbols",
    "flags",
]

EMOJI_CATEGORIES: tuple[str, ...] = get_args(EmojiCategory)


class ImageAnalysis(BaseModel):
    """Validated analysis of one emoji image.

    Attributes:
        category: One of :data:`EMOJI_CATEGORIES`.
        primary_color: Basic colour term (e.g. "sky blue").
        quality_score: 0 (unusable) to 5 (perfect).
        subject_count: Distinct subjects, capped at 3.
        keywords: Three to five descriptive keywords.
    """

    model_config = ConfigDict(populate_by_name=True)

    category: EmojiCategory
    primary_color: str = Field(alias="primaryColor", min_length=3, max_length=30)
    quality_score: int = Field(alias="qualityScore", ge=0, le=5)
    subject_count: int = Field(alias="subjectCount", ge=1, le=3)
    keywords: list[str] = Field(min_length=3, max_length=5)


ANALYSIS_JSON_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "category": {
            "type": "string",
            "enum": list(EMOJI_CATEGORIES),
            "description": "Category of the emoji",
        },
        "primaryColor": {
            "type": "string",
            "description": "Basic color term (e.g., sky blue, grass green)",
        },
        "qualityScore": {
            "type": "integer",
            "description": "Quality score from 0 to 5",
        },
        "subjectCount": {
            "type": "integer",
            "description": "Number of distinct subjects (1-3)",
        },
        "keywords": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Array of 3-5 descriptive keywords",
        },
    },
    "required": ["category", "primaryColor", "qualityScore", "subjectCount", "keywords"],
    "additionalProperties": False,
}

ANALYSIS_SYSTEM_PROMPT = """You are an expert emoji image analyzer. Your task is to analyze emoji-style images and provide structured analysis results.

<rules>
1. category:
   - Choose based on primary theme and purpose
   - Use people_body or smileys_emotion for character emojis
   - Use appropriate category for objects and symbols

2. primaryColor:
   - Use widely understood color terms (e.g., sky blue, grass green)
   - Focus on the most eye-catching or emotionally significant color
   - Keep descriptions simple and clear

3. qualityScore:
   - 5: Perfect (clear, expressive, well-designed)
   - 4: Very good (minor imperfections)
   - 3: Good (noticeable but acceptable issues)
   - 2: Fair (significant issues)
   - 1: Poor (major design problems)
   - 0: Unusable

4. subjectCount:
   - Count distinct visual elements
   - Maximum value is 3
   - Count faces as one subject
   - Count major components in composite emojis

5. keywords:
   - Include emotional expressions (happy, sad, excited)
   - Include main subjects (cat, heart, star)
   - Include actions (running, eating, sleeping)
   - Include distinctive features (sparkly, cute, funny)
   - Keep words simple and emoji-relevant
</rules>"""


class ImageAnalyzer:
    """Vision chat-completion client producing :class:`ImageAnalysis` results."""

    def __init__(self, client: AsyncOpenAI, model: str, temperature: float = 0.1) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature

    async def analyze_image(self, image_url: str) -> ImageAnalysis:
        """Analyze the image at ``image_url``.

        Raises:
            AnalysisError: The provider failed, or its reply was empty or did
                not match the schema.
        """
        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": "Please analyze this emoji image:"},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    },
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "emoji_analysis",
                        "schema": ANALYSIS_JSON_SCHEMA,
                        "strict": True,
                    },
                },
                temperature=self._temperature,
            )
        except OpenAIError as e:
            logger.error(f"Image analysis failed for {image_url}: {e}")
            raise AnalysisError(f"Image analysis failed: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise AnalysisError("Invalid image analysis response format")

        try:
            return ImageAnalysis.model_validate_json(content)
        except pydantic.ValidationError as e:
            logger.error(f"Image analysis for {image_url} did not match schema: {e}")
            raise AnalysisError("Invalid image analysis response format") from e
