"""FastAPI dependencies that expose the services built in the lifespan."""

from __future__ import annotations

from fastapi import Request

from genmoji.core.database import EmojiDB
from genmoji.core.generation import EmojiGenerator
from genmoji.core.image_analysis import ImageAnalyzer
from genmoji.core.language import Translator
from genmoji.core.stats import StatsStore
from genmoji.core.vectorize import VectorIndex

# Set by the CDN in front of the API; absent in local development.
CLIENT_IP_HEADER = "cf-connecting-ip"


def get_db(request: Request) -> EmojiDB:
    return request.app.state.db


def get_stats(request: Request) -> StatsStore:
    return request.app.state.stats


def get_vectors(request: Request) -> VectorIndex:
    return request.app.state.vectors


def get_translator(request: Request) -> Translator:
    return request.app.state.translator


def get_analyzer(request: Request) -> ImageAnalyzer:
    return request.app.state.analyzer


def get_generator(request: Request) -> EmojiGenerator:
    return request.app.state.generator


def get_client_ip(request: Request) -> str:
    return request.headers.get(CLIENT_IP_HEADER) or "unknown"
