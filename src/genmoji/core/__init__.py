"""Core services for emoji generation and cataloguing.

This package holds everything below the HTTP layer:

- **Configuration** (config.py): Pydantic Settings, ``GENMOJI_`` prefix.
- **Errors** (errors.py): exception hierarchy carrying HTTP status codes.
- **Text utilities** (slug.py, language.py): slug derivation, English
  detection, and chat-completion translation.
- **Providers** (replicate.py, cdn.py, vectorize.py, image_analysis.py,
  llm.py): async clients for prediction, image hosting, embeddings and
  vector search, and vision analysis.
- **Persistence** (database.py, stats.py): SQLite store for emojis and
  annotations, plus the action log and the stats derived from it.
- **Pipeline** (generation.py): prompt to stored emoji, followed by
  best-effort enrichment.

Usage Example
-------------
    from genmoji.core import EmojiDB, config

    db = EmojiDB(config.database_path)
    emoji = db.get_emoji_by_slug("happy-cat", locale="en")
"""

from genmoji.core.config import GenmojiConfig, config
from genmoji.core.database import EmojiDB
from genmoji.core.errors import GenmojiError, NotFoundError, UpstreamError, ValidationError
from genmoji.core.generation import EmojiGenerator
from genmoji.core.stats import StatsStore

__all__ = [
    "EmojiDB",
    "EmojiGenerator",
    "GenmojiConfig",
    "GenmojiError",
    "NotFoundError",
    "StatsStore",
    "UpstreamError",
    "ValidationError",
    "config",
]
