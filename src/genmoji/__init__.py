"""Genmoji API - emoji generation, enrichment, and catalogue backend."""

__version__ = "0.3.0"

from genmoji.core.config import GenmojiConfig, config

__all__ = [
    "GenmojiConfig",
    "config",
]
