"""Shared pytest fixtures for Genmoji tests.

Provider clients are replaced by in-memory fakes (or by ``httpx.MockTransport``
in the provider unit tests) so no test touches the network.  The SQLite store
is real and lives in a per-test temporary directory.
"""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from openai import AsyncOpenAI

from genmoji.core.config import GenmojiConfig
from genmoji.core.database import EmojiDB
from genmoji.core.errors import AnalysisError, TranslationError
from genmoji.core.generation import EmojiGenerator
from genmoji.core.image_analysis import ImageAnalysis
from genmoji.core.stats import StatsStore

# ---------------------------------------------------------------------------
# Provider fakes.
# ---------------------------------------------------------------------------


class FakeReplicate:
    """Records submissions and resolves every prediction immediately."""

    def __init__(self) -> None:
        self.generations: list[tuple[str, str, str | None]] = []
        self.background_removals: list[str] = []
        self.polls: list[tuple[str, int]] = []

    async def submit_generation(self, prompt, style="gemoji", image=None, seed=None) -> str:
        self.generations.append((prompt, style, image))
        return f"https://replicate.test/predictions/gen-{len(self.generations)}"

    async def remove_background(self, image_url: str) -> str:
        self.background_removals.append(image_url)
        return f"https://replicate.test/predictions/rembg-{len(self.background_removals)}"

    async def poll_prediction(self, url: str, max_attempts: int = 30) -> str:
        self.polls.append((url, max_attempts))
        return url.replace("/predictions/", "/outputs/") + ".png"


class FakeImageHost:
    def __init__(self) -> None:
        self.uploads: list[str] = []

    async def upload_from_url(self, image_url: str) -> str:
        self.uploads.append(image_url)
        return f"https://imagedelivery.test/image-{len(self.uploads)}/public"


class FakeTranslator:
    """Prefixes text with the target locale; texts in ``failing`` raise."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.failing: set[str] = set()
        self.english: dict[str, str] = {}

    async def translate_text(self, text: str, target_locale: str) -> str:
        self.calls.append((text, target_locale))
        if text in self.failing:
            raise TranslationError("Translation failed")
        if target_locale == "en" and text in self.english:
            return self.english[text]
        return f"[{target_locale}] {text}"

    async def translate_to_multiple_languages(self, text: str, locales: list[str]) -> dict:
        return {locale: await self.translate_text(text, locale) for locale in locales}


class FakeAnalyzer:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail = False

    async def analyze_image(self, image_url: str) -> ImageAnalysis:
        self.calls.append(image_url)
        if self.fail:
            raise AnalysisError("Invalid image analysis response format")
        return ImageAnalysis(
            category="animals_nature",
            primary_color="sunny yellow",
            quality_score=4,
            subject_count=1,
            keywords=["cute", "cat", "happy"],
        )


class FakeVectors:
    def __init__(self) -> None:
        self.stored: list[dict] = []
        self.searches: list[dict] = []
        self.results: list[dict] = []
        self.fail = False

    async def store_emoji_vector(self, emoji: dict) -> None:
        if self.fail:
            raise RuntimeError("vector index unavailable")
        self.stored.append(emoji)

    async def search_emojis(self, prompt, limit, offset=0, exclude_id=None, locale="en"):
        self.searches.append(
            {
                "prompt": prompt,
                "limit": limit,
                "offset": offset,
                "exclude_id": exclude_id,
                "locale": locale,
            }
        )
        return self.results


# ---------------------------------------------------------------------------
# Configuration and storage.
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> GenmojiConfig:
    """Configuration pointing at a temporary database with no polling delays."""
    return GenmojiConfig(
        data_dir=temp_dir / "data",
        database_path=temp_dir / "data" / "genmoji.db",
        cloudflare_account_id="test-account",
        cloudflare_api_token="cf-test-token",
        replicate_api_token="r8-test-token",
        xai_api_key="xai-test-key",
        poll_initial_delay=0.0,
        poll_interval=0.0,
        _env_file=None,
    )


@pytest.fixture
def emoji_db(test_config: GenmojiConfig) -> EmojiDB:
    return EmojiDB(test_config.database_path)


@pytest.fixture
def stats_store(emoji_db: EmojiDB) -> StatsStore:
    return StatsStore(emoji_db)


@pytest.fixture
def make_emoji(emoji_db: EmojiDB) -> Callable[..., dict]:
    """Factory inserting an emoji row with sensible defaults.

    The slug defaults to the base slug, and the base slug to a slug of the
    prompt.
    """

    def _make(prompt: str = "happy cat", **overrides) -> dict:
        base_slug = overrides.pop("base_slug", prompt.lower().replace(" ", "-"))
        fields = {
            "prompt": prompt,
            "original_prompt": prompt,
            "base_slug": base_slug,
            "slug": base_slug,
            "image_url": f"https://imagedelivery.test/{base_slug}/public",
            "ip": "203.0.113.7",
        }
        fields.update(overrides)
        return emoji_db.insert_emoji(**fields)

    return _make


# ---------------------------------------------------------------------------
# Chat-completion client backed by a mock transport.
# ---------------------------------------------------------------------------


def chat_completion(content: str | None) -> dict:
    """Minimal chat-completion response body carrying ``content``."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": content},
            }
        ],
        "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
    }


@pytest.fixture
def chat_reply() -> Callable[[str | None], dict]:
    return chat_completion


@pytest.fixture
def llm_client_factory() -> Callable[[Callable], AsyncOpenAI]:
    """Build an :class:`AsyncOpenAI` client whose requests go to ``handler``."""

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key="test-key",
            base_url="https://llm.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    return _factory


# ---------------------------------------------------------------------------
# Pipeline and API.
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_replicate() -> FakeReplicate:
    return FakeReplicate()


@pytest.fixture
def fake_image_host() -> FakeImageHost:
    return FakeImageHost()


@pytest.fixture
def fake_translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def fake_analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def fake_vectors() -> FakeVectors:
    return FakeVectors()


@pytest.fixture
def generator(
    emoji_db: EmojiDB,
    fake_replicate: FakeReplicate,
    fake_image_host: FakeImageHost,
    fake_translator: FakeTranslator,
    fake_analyzer: FakeAnalyzer,
    fake_vectors: FakeVectors,
) -> EmojiGenerator:
    return EmojiGenerator(
        emoji_db,
        fake_replicate,
        fake_image_host,
        fake_translator,
        fake_analyzer,
        fake_vectors,
    )


@pytest.fixture
def test_client(
    emoji_db: EmojiDB,
    stats_store: StatsStore,
    generator: EmojiGenerator,
    fake_translator: FakeTranslator,
    fake_analyzer: FakeAnalyzer,
    fake_vectors: FakeVectors,
) -> Generator[TestClient, None, None]:
    """TestClient with fake services on ``app.state``.

    The client is not entered as a context manager, so the production
    lifespan (which builds real provider clients) never runs.
    """
    from genmoji.api.main import app

    app.state.db = emoji_db
    app.state.stats = stats_store
    app.state.generator = generator
    app.state.translator = fake_translator
    app.state.analyzer = fake_analyzer
    app.state.vectors = fake_vectors

    yield TestClient(app)
