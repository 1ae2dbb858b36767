"""Endpoint groups, each mounted under its own prefix by :mod:`genmoji.api.main`."""

from genmoji.api.routes import action, analysis, emoji, translation

__all__ = ["action", "analysis", "emoji", "translation"]
