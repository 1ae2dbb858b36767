"""Genmoji API - FastAPI Application.

This module defines the FastAPI ``app`` instance, wires the core services
onto ``app.state``, maps errors to the response envelope, and provides the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Services** are built once in :func:`lifespan` and shared by every
  request: the SQLite store, the stats store, the provider clients, and the
  :class:`~genmoji.core.generation.EmojiGenerator` that composes them.
  Route handlers reach them through :mod:`genmoji.api.dependencies`.
- **Errors** raised by the core carry their HTTP status code
  (:class:`~genmoji.core.errors.GenmojiError`).  Handlers let them
  propagate; the exception handlers below render every failure, including
  FastAPI's own validation errors, as ``{"success": false, "error": ...}``.
- **Enrichment** after generation runs as a FastAPI background task, after
  the response has been sent.

Endpoints
---------
========  ======================================  ===============================
Method    Path                                    Purpose
========  ======================================  ===============================
GET       ``/genmoji/by-slug/{slug}``             One emoji with details
GET       ``/genmoji/by-base-slug/{base_slug}``   Generations sharing a base slug
GET       ``/genmoji/related/{slug}``             Vector neighbours of an emoji
GET       ``/genmoji/list``                       Paginated, sorted catalogue
GET       ``/genmoji/search``                     Semantic prompt search
GET       ``/genmoji/groups``                     Emojis grouped by category
GET       ``/genmoji/keywords/search``            Keyword overlap search
GET       ``/genmoji/keywords/popular``           Most frequent keywords
POST      ``/genmoji/generate``                   Generate an emoji
POST      ``/action/{slug}/like``                 Toggle like
GET       ``/action/{slug}/like-status``          Caller's like state
POST      ``/action/{slug}/vote``                 Up/down vote
GET       ``/action/{slug}/votes``                Vote counts
POST      ``/action/{slug}``                      Record an action
GET       ``/action/{slug}/stats``                Aggregated stats
GET       ``/action/reports``                     Moderation queue
POST      ``/action/reports/{id}/status``         Update report status
GET       ``/translation/progress/{locale}``      Translation coverage
POST      ``/translation/batch/{locale}``         Translate next batch
POST      ``/analysis/analyze``                   Analyze one image
POST      ``/analysis/batch``                     Analyze image URLs
POST      ``/analysis/process/local``             Analyze next stored batch
GET       ``/analysis/progress``                  Analysis coverage
POST      ``/analysis/update-stats``              Recompute all stats
========  ======================================  ===============================

Usage
-----
CLI (installed entry point)::

    genmoji

Direct invocation::

    python -m genmoji.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from genmoji import __version__
from genmoji.api.models import failure, success
from genmoji.api.routes import action, analysis, emoji, translation
from genmoji.core.cdn import ImageHost
from genmoji.core.config import config
from genmoji.core.database import EmojiDB
from genmoji.core.errors import GenmojiError
from genmoji.core.generation import EmojiGenerator
from genmoji.core.image_analysis import ImageAnalyzer
from genmoji.core.language import Translator
from genmoji.core.llm import create_llm_client
from genmoji.core.replicate import ReplicateClient
from genmoji.core.stats import StatsStore
from genmoji.core.vectorize import VectorIndex

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application lifecycle - service construction and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the services on startup and close their HTTP clients on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    db = EmojiDB(config.database_path)
    llm = create_llm_client(config)
    replicate = ReplicateClient.from_config(config)
    image_host = ImageHost.from_config(config)
    vectors = VectorIndex.from_config(config, db)
    translator = Translator(llm, config.translation_model)
    analyzer = ImageAnalyzer(llm, config.vision_model)

    app.state.db = db
    app.state.stats = StatsStore(db)
    app.state.vectors = vectors
    app.state.translator = translator
    app.state.analyzer = analyzer
    app.state.generator = EmojiGenerator(
        db,
        replicate,
        image_host,
        translator,
        analyzer,
        vectors,
        max_prompt_length=config.max_prompt_length,
        enrichment_locales=config.enrichment_locales,
        generation_max_attempts=config.generation_max_attempts,
        background_removal_max_attempts=config.background_removal_max_attempts,
    )
    logger.info(f"Genmoji API {__version__} started with database {config.database_path}")

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    await replicate.aclose()
    await image_host.aclose()
    await vectors.aclose()
    await llm.close()
    logger.info("Provider clients closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Genmoji API",
    description="Emoji generation, enrichment, and catalogue API.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(emoji.router, prefix="/genmoji", tags=["genmoji"])
app.include_router(action.router, prefix="/action", tags=["action"])
app.include_router(translation.router, prefix="/translation", tags=["translation"])
app.include_router(analysis.router, prefix="/analysis", tags=["analysis"])


# ---------------------------------------------------------------------------
# Error handling - every failure uses the response envelope.
# ---------------------------------------------------------------------------


@app.exception_handler(GenmojiError)
async def genmoji_error_handler(request: Request, exc: GenmojiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content=failure(exc.message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=failure(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=failure(message))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=failure("An unexpected error occurred"))


@app.get("/")
async def index() -> dict:
    """Service banner."""
    return success({"name": "genmoji-api", "version": __version__})


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port, and log level from :data:`~genmoji.core.config.config`
    (``GENMOJI_SERVER_HOST``, ``GENMOJI_SERVER_PORT``, ``GENMOJI_LOG_LEVEL``).

    This function is registered as the ``genmoji`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "genmoji.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
