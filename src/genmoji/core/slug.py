"""URL-safe identifiers derived from prompts.

A *base slug* is the deterministic slug of the (English) prompt.  When the
base slug is already taken in a locale, :func:`create_unique_slug` appends a
``--`` separator followed by a base-36 millisecond timestamp and four random
base-36 characters.  The suffixed slug is not re-checked for uniqueness; the
collision probability is accepted.
"""

from __future__ import annotations

import random
import re
import string
import time

DEFAULT_MAX_LENGTH = 80
UNIQUE_SEPARATOR = "--"
FALLBACK_SLUG = "emoji"

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def create_slug(text: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Derive a slug from free text.

    Lowercases the text, collapses every run of characters outside
    ``[a-z0-9]`` into a single hyphen, strips hyphens from both ends, and
    truncates to ``max_length`` (dropping a hyphen left dangling by the cut).

    Args:
        text: Source text, normally the English prompt.
        max_length: Maximum slug length.

    Returns:
        The slug, or ``"emoji"`` when the text has no usable characters.
    """
    slug = _NON_SLUG_CHARS.sub("-", text.lower()).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or FALLBACK_SLUG


def create_unique_slug(base_slug: str) -> str:
    """Append a time-plus-random suffix to ``base_slug``."""
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(random.choices(_BASE36_ALPHABET, k=4))
    return f"{base_slug}{UNIQUE_SEPARATOR}{timestamp}{random_part}"


def parse_slug(slug: str) -> tuple[str, str | None]:
    """Split a slug into ``(base_slug, unique_id)``."""
    base, _, unique_id = slug.partition(UNIQUE_SEPARATOR)
    return base, unique_id or None


def get_base_slug(slug: str) -> str:
    return parse_slug(slug)[0]


def infer_prompt_from_slug(slug: str) -> str:
    """Best-effort reverse of :func:`create_slug`: hyphens become spaces."""
    return get_base_slug(slug).replace("-", " ")
