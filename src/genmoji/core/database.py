"""SQLite persistence for emojis, annotations, translations, likes, and votes.

:class:`EmojiDB` is a thin collection of parameterized SQL statements.  Each
public method opens its own connection, runs inside a single transaction, and
returns plain dictionaries so the API layer can serialise them directly.

Tables
------
- ``emojis`` - one row per generated image; ``UNIQUE(slug, locale)``.
- ``emoji_details`` - analysis annotations; ``UNIQUE(slug, locale)``.
- ``emoji_translations`` - ``(base_slug, locale) -> translated_prompt``.
- ``emoji_likes`` - per-user like toggle state.
- ``emoji_votes`` - per-IP up/down vote.
- ``emoji_actions``, ``emoji_reports``, ``emoji_stats`` - owned by
  :class:`genmoji.core.stats.StatsStore`, created here with the rest of the
  schema.

Prompt Columns
--------------
``prompt`` holds the English prompt that was actually sent to the model
(translated when the input was not English) and ``original_prompt`` the text
the user typed.  Read queries add ``localized_prompt``: the translation for
the requested locale when one exists, else the original prompt.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from genmoji.core.image_analysis import EMOJI_CATEGORIES, ImageAnalysis

logger = logging.getLogger(__name__)

SortOrder = Literal["latest", "popular", "quality"]

SCHEMA = """
CREATE TABLE IF NOT EXISTS emojis (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    prompt TEXT NOT NULL,
    original_prompt TEXT,
    base_slug TEXT NOT NULL,
    slug TEXT NOT NULL,
    image_url TEXT NOT NULL,
    is_public INTEGER NOT NULL DEFAULT 1,
    has_reference_image INTEGER NOT NULL DEFAULT 0,
    model TEXT NOT NULL DEFAULT 'gemoji',
    locale TEXT NOT NULL DEFAULT 'en',
    ip TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (slug, locale)
);
CREATE INDEX IF NOT EXISTS idx_emojis_base_slug ON emojis (base_slug);
CREATE INDEX IF NOT EXISTS idx_emojis_created_at ON emojis (created_at DESC);

CREATE TABLE IF NOT EXISTS emoji_details (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL,
    locale TEXT NOT NULL,
    category TEXT,
    primary_color TEXT,
    quality_score INTEGER,
    subject_count INTEGER,
    keywords TEXT,
    UNIQUE (slug, locale)
);

CREATE TABLE IF NOT EXISTS emoji_translations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    base_slug TEXT NOT NULL,
    locale TEXT NOT NULL,
    translated_prompt TEXT NOT NULL,
    UNIQUE (base_slug, locale)
);

CREATE TABLE IF NOT EXISTS emoji_stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL,
    locale TEXT NOT NULL,
    views_count INTEGER NOT NULL DEFAULT 0,
    likes_count INTEGER NOT NULL DEFAULT 0,
    downloads_count INTEGER NOT NULL DEFAULT 0,
    copies_count INTEGER NOT NULL DEFAULT 0,
    reports_count INTEGER NOT NULL DEFAULT 0,
    rating_count INTEGER NOT NULL DEFAULT 0,
    total_rating INTEGER NOT NULL DEFAULT 0,
    average_rating REAL NOT NULL DEFAULT 0,
    vote_count INTEGER NOT NULL DEFAULT 0,
    total_actions_count INTEGER NOT NULL DEFAULT 0,
    last_updated_at TEXT,
    UNIQUE (slug, locale)
);

CREATE TABLE IF NOT EXISTS emoji_actions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL,
    locale TEXT NOT NULL,
    user_id TEXT,
    user_ip TEXT NOT NULL,
    action_type TEXT NOT NULL,
    action_details TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_emoji_actions_slug ON emoji_actions (slug, locale);

CREATE TABLE IF NOT EXISTS emoji_reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL,
    locale TEXT NOT NULL,
    user_id TEXT,
    reason TEXT NOT NULL,
    details TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS emoji_likes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL,
    locale TEXT NOT NULL,
    user_id TEXT,
    user_ip TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_emoji_likes_slug ON emoji_likes (slug);

CREATE TABLE IF NOT EXISTS emoji_votes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL,
    locale TEXT NOT NULL,
    user_ip TEXT NOT NULL,
    vote_type TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (slug, locale, user_ip)
);
"""

# Columns returned for public emoji listings.  Expects aliases ``e`` (emojis)
# and ``et`` (emoji_translations joined on the requested locale).
_EMOJI_COLUMNS = """
    e.id,
    e.slug,
    e.base_slug,
    e.image_url,
    e.created_at,
    e.is_public,
    e.has_reference_image,
    e.model,
    e.locale,
    e.prompt,
    e.original_prompt,
    COALESCE(et.translated_prompt, e.original_prompt, e.prompt) AS localized_prompt
"""

_TRANSLATION_JOIN = """
    LEFT JOIN emoji_translations et
        ON e.base_slug = et.base_slug AND et.locale = ?
"""

# One analysis row per emoji, whatever locale it was stored under: the
# requested locale wins, then the emoji's own locale, then the oldest row.
_DETAILS_JOIN = """
    LEFT JOIN emoji_details ed ON ed.id = (
        SELECT d.id FROM emoji_details d
        WHERE d.slug = e.slug
        ORDER BY d.locale = ? DESC, d.locale = e.locale DESC, d.id
        LIMIT 1
    )
"""


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (sortable as text)."""
    return datetime.now(timezone.utc).isoformat()


def _emoji_from_row(row: sqlite3.Row) -> dict:
    emoji = dict(row)
    for flag in ("is_public", "has_reference_image"):
        if flag in emoji:
            emoji[flag] = bool(emoji[flag])
    if "keywords" in emoji:
        emoji["keywords"] = _decode_keywords(emoji["keywords"])
    return emoji


def _decode_keywords(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        keywords = json.loads(raw)
    except json.JSONDecodeError:
        return []
    return [str(k) for k in keywords] if isinstance(keywords, list) else []


def _placeholders(values: list) -> str:
    return ", ".join("?" for _ in values)


class EmojiDB:
    """Relational store for generated emojis and their annotations.

    Args:
        db_path: Path to the SQLite database file.  Parent directories are
            created on demand.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()
        logger.info(f"Initialized emoji database at {self.db_path}")

    def _initialize_db(self) -> None:
        """Create the schema if it doesn't exist."""
        with self.connect() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that commits on success and rolls back on error."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Emojis
    # ------------------------------------------------------------------

    def insert_emoji(
        self,
        *,
        prompt: str,
        base_slug: str,
        slug: str,
        image_url: str,
        original_prompt: str | None = None,
        ip: str | None = None,
        has_reference_image: bool = False,
        is_public: bool = True,
        locale: str = "en",
        model: str = "gemoji",
    ) -> dict:
        """Insert a generated emoji.

        Returns:
            The stored row, including its new ``id`` and ``created_at``.
        """
        created_at = utc_now()
        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO emojis (
                    prompt, base_slug, slug, image_url, original_prompt, ip,
                    has_reference_image, is_public, locale, model, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    prompt,
                    base_slug,
                    slug,
                    image_url,
                    original_prompt,
                    ip,
                    int(has_reference_image),
                    int(is_public),
                    locale,
                    model,
                    created_at,
                ),
            )
            emoji_id = cursor.lastrowid

        logger.info(f"Inserted emoji {slug} ({locale}) with id {emoji_id}")
        return {
            "id": emoji_id,
            "prompt": prompt,
            "original_prompt": original_prompt,
            "base_slug": base_slug,
            "slug": slug,
            "image_url": image_url,
            "is_public": is_public,
            "has_reference_image": has_reference_image,
            "locale": locale,
            "model": model,
            "created_at": created_at,
        }

    def slug_exists(self, slug: str, locale: str) -> bool:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM emojis WHERE slug = ? AND locale = ? LIMIT 1",
                (slug, locale),
            ).fetchone()
        return row is not None

    def get_emoji_row(self, slug: str) -> dict | None:
        """Return the stored row for ``slug`` regardless of locale or visibility."""
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM emojis WHERE slug = ? ORDER BY id LIMIT 1",
                (slug,),
            ).fetchone()
        return _emoji_from_row(row) if row else None

    def get_emoji_by_slug(self, slug: str, locale: str = "en") -> dict | None:
        """Fetch one emoji with its translation for ``locale`` and its analysis.

        When the same slug exists in several locales, the row created in
        ``locale`` wins.
        """
        with self.connect() as conn:
            row = conn.execute(
                f"""
                SELECT
                    {_EMOJI_COLUMNS},
                    ed.category,
                    ed.primary_color,
                    ed.quality_score,
                    ed.subject_count,
                    ed.keywords
                FROM emojis e
                {_TRANSLATION_JOIN}
                {_DETAILS_JOIN}
                WHERE e.slug = ?
                ORDER BY e.locale = ? DESC, e.id
                LIMIT 1
                """,
                (locale, locale, slug, locale),
            ).fetchone()
        return _emoji_from_row(row) if row else None

    def get_emojis_by_base_slug(
        self,
        base_slug: str,
        limit: int = 20,
        offset: int = 0,
        locale: str = "en",
    ) -> list[dict]:
        """List the non-reference-image generations sharing ``base_slug``, newest first."""
        with self.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_EMOJI_COLUMNS}
                FROM emojis e
                {_TRANSLATION_JOIN}
                WHERE e.base_slug = ? AND e.has_reference_image = 0
                ORDER BY e.created_at DESC, e.id DESC
                LIMIT ? OFFSET ?
                """,
                (locale, base_slug, limit, offset),
            ).fetchall()
        return [_emoji_from_row(row) for row in rows]

    def list_emojis(
        self,
        *,
        limit: int,
        offset: int,
        sort: SortOrder = "latest",
        locale: str = "en",
        model: str | None = None,
        category: str | None = None,
        color: str | None = None,
    ) -> list[dict]:
        """List public, non-reference-image emojis.

        Args:
            limit: Page size.
            offset: Rows to skip.
            sort: ``latest`` (newest first), ``popular`` (stats rating, then
                vote count), or ``quality`` (analysis quality score).
            locale: Locale used for ``localized_prompt``.
            model: Only emojis generated with this style.
            category: Only emojis analysed into this category.
            color: Only emojis whose primary colour contains this text.

        Returns:
            Emoji dictionaries for the requested page.
        """
        joins = [_TRANSLATION_JOIN]
        where = ["e.is_public = 1", "e.has_reference_image = 0"]
        params: list = [locale]

        if category or color or sort == "quality":
            joins.append(_DETAILS_JOIN)
            params.append(locale)
        if sort == "popular":
            joins.append("LEFT JOIN emoji_stats s ON s.slug = e.slug AND s.locale = e.locale")

        if model:
            where.append("e.model = ?")
            params.append(model)
        if category:
            where.append("ed.category = ?")
            params.append(category)
        if color:
            where.append("ed.primary_color LIKE ?")
            params.append(f"%{color}%")

        if sort == "popular":
            order_by = "s.average_rating DESC, s.vote_count DESC, e.created_at DESC, e.id DESC"
        elif sort == "quality":
            order_by = "ed.quality_score DESC, e.created_at DESC, e.id DESC"
        else:
            order_by = "e.created_at DESC, e.id DESC"

        query = f"""
            SELECT {_EMOJI_COLUMNS}
            FROM emojis e
            {" ".join(joins)}
            WHERE {" AND ".join(where)}
            ORDER BY {order_by}
            LIMIT ? OFFSET ?
        """
        params.extend([limit, offset])

        with self.connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_emoji_from_row(row) for row in rows]

    def get_emojis_by_ids(self, ids: list[int], locale: str = "en") -> list[dict]:
        """Hydrate public emojis by primary key (order not guaranteed)."""
        if not ids:
            return []
        with self.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_EMOJI_COLUMNS}
                FROM emojis e
                {_TRANSLATION_JOIN}
                WHERE e.id IN ({_placeholders(ids)}) AND e.is_public = 1
                """,
                [locale, *ids],
            ).fetchall()
        return [_emoji_from_row(row) for row in rows]

    def get_emoji_groups(self, locale: str = "en", sample_size: int = 4) -> list[dict]:
        """Group public emojis by analysed category.

        Returns:
            One entry per category that has at least one emoji, in the
            canonical category order, each with ``category``, ``count``, and
            up to ``sample_size`` newest ``emojis``.
        """
        with self.connect() as conn:
            counts = {
                row["category"]: row["count"]
                for row in conn.execute(
                    f"""
                    SELECT ed.category, COUNT(DISTINCT e.id) AS count
                    FROM emojis e
                    {_DETAILS_JOIN}
                    WHERE e.is_public = 1 AND ed.category IS NOT NULL
                    GROUP BY ed.category
                    """,
                    (locale,),
                ).fetchall()
            }

            groups = []
            for category in EMOJI_CATEGORIES:
                if not counts.get(category):
                    continue
                rows = conn.execute(
                    f"""
                    SELECT {_EMOJI_COLUMNS}
                    FROM emojis e
                    {_TRANSLATION_JOIN}
                    {_DETAILS_JOIN}
                    WHERE e.is_public = 1 AND ed.category = ?
                    ORDER BY e.created_at DESC, e.id DESC
                    LIMIT ?
                    """,
                    (locale, locale, category, sample_size),
                ).fetchall()
                groups.append(
                    {
                        "category": category,
                        "count": counts[category],
                        "emojis": [_emoji_from_row(row) for row in rows],
                    }
                )
        return groups

    # ------------------------------------------------------------------
    # Details and keywords
    # ------------------------------------------------------------------

    def save_analysis_result(self, slug: str, locale: str, analysis: ImageAnalysis) -> None:
        """Upsert the analysis annotation for ``(slug, locale)``."""
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO emoji_details (
                    slug, locale, category, primary_color, quality_score,
                    subject_count, keywords
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (slug, locale) DO UPDATE SET
                    category = excluded.category,
                    primary_color = excluded.primary_color,
                    quality_score = excluded.quality_score,
                    subject_count = excluded.subject_count,
                    keywords = excluded.keywords
                """,
                (
                    slug,
                    locale,
                    analysis.category,
                    analysis.primary_color,
                    analysis.quality_score,
                    analysis.subject_count,
                    json.dumps(analysis.keywords),
                ),
            )

    def get_emoji_details(self, slug: str, locale: str) -> dict | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT * FROM emoji_details WHERE slug = ? AND locale = ?",
                (slug, locale),
            ).fetchone()
        return _emoji_from_row(row) if row else None

    def update_emoji_keywords(self, slug: str, locale: str, keywords: list[str]) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO emoji_details (slug, locale, keywords)
                VALUES (?, ?, ?)
                ON CONFLICT (slug, locale) DO UPDATE SET keywords = excluded.keywords
                """,
                (slug, locale, json.dumps(keywords)),
            )

    def search_emojis_by_keywords(
        self,
        keywords: list[str],
        locale: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[dict]:
        """Find public emojis whose keywords overlap ``keywords``.

        Matching is case-insensitive; ``keywords`` are expected in lowercase.
        Results are ranked by the number of matching keywords, then recency.
        """
        if not keywords:
            return []
        with self.connect() as conn:
            rows = conn.execute(
                f"""
                WITH matched AS (
                    SELECT d.slug, d.locale, COUNT(*) AS match_count
                    FROM emoji_details d, json_each(d.keywords) k
                    WHERE d.locale = ? AND LOWER(k.value) IN ({_placeholders(keywords)})
                    GROUP BY d.slug, d.locale
                )
                SELECT {_EMOJI_COLUMNS}, m.match_count
                FROM emojis e
                JOIN matched m ON e.slug = m.slug
                {_TRANSLATION_JOIN}
                WHERE e.is_public = 1
                ORDER BY m.match_count DESC, e.created_at DESC, e.id DESC
                LIMIT ? OFFSET ?
                """,
                [locale, *keywords, locale, limit, offset],
            ).fetchall()
        return [_emoji_from_row(row) for row in rows]

    def get_popular_keywords(self, locale: str, limit: int = 20) -> list[dict]:
        """Most frequent analysis keywords for ``locale``."""
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT k.value AS keyword, COUNT(*) AS count
                FROM emoji_details d, json_each(d.keywords) k
                WHERE d.locale = ?
                GROUP BY k.value
                ORDER BY count DESC, keyword
                LIMIT ?
                """,
                (locale, limit),
            ).fetchall()
        return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Translations
    # ------------------------------------------------------------------

    def upsert_translations(self, base_slug: str, translations: dict[str, str]) -> None:
        """Store ``{locale: translated_prompt}`` for one base slug."""
        self.batch_insert_translations(
            [(base_slug, locale, text) for locale, text in translations.items()]
        )

    def batch_insert_translations(self, rows: list[tuple[str, str, str]]) -> None:
        """Upsert ``(base_slug, locale, translated_prompt)`` rows in one transaction."""
        if not rows:
            return
        with self.connect() as conn:
            conn.executemany(
                """
                INSERT INTO emoji_translations (base_slug, locale, translated_prompt)
                VALUES (?, ?, ?)
                ON CONFLICT (base_slug, locale) DO UPDATE SET
                    translated_prompt = excluded.translated_prompt
                """,
                rows,
            )

    def get_translation(self, base_slug: str, locale: str) -> str | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT translated_prompt FROM emoji_translations WHERE base_slug = ? AND locale = ?",
                (base_slug, locale),
            ).fetchone()
        return row["translated_prompt"] if row else None

    def get_untranslated_emojis(
        self,
        target_locale: str,
        limit: int,
        last_processed_id: int | None = None,
    ) -> list[dict]:
        """Page through emojis with no translation for ``target_locale``, by id."""
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT e.*
                FROM emojis e
                LEFT JOIN emoji_translations et
                    ON e.base_slug = et.base_slug AND et.locale = ?
                WHERE et.translated_prompt IS NULL AND e.id > ?
                ORDER BY e.id
                LIMIT ?
                """,
                (target_locale, last_processed_id or 0, limit),
            ).fetchall()
        return [_emoji_from_row(row) for row in rows]

    def get_translation_progress(self, locale: str) -> dict:
        """Translation coverage of ``locale`` across all emojis."""
        with self.connect() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COUNT(et.translated_prompt) AS translated,
                    MAX(CASE WHEN et.translated_prompt IS NOT NULL THEN e.id END)
                        AS last_processed_id
                FROM emojis e
                LEFT JOIN emoji_translations et
                    ON e.base_slug = et.base_slug AND et.locale = ?
                """,
                (locale,),
            ).fetchone()
        total = row["total"] or 0
        translated = row["translated"] or 0
        return {
            "total": total,
            "translated": translated,
            "remaining": total - translated,
            "last_processed_id": row["last_processed_id"],
        }

    # ------------------------------------------------------------------
    # Analysis batches
    # ------------------------------------------------------------------

    def get_unanalyzed_emojis(self, batch_size: int, last_processed_id: int = 0) -> list[dict]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT id, slug, image_url
                FROM emojis
                WHERE id > ?
                  AND slug NOT IN (SELECT slug FROM emoji_details WHERE category IS NOT NULL)
                ORDER BY id
                LIMIT ?
                """,
                (last_processed_id or 0, batch_size),
            ).fetchall()
        return [dict(row) for row in rows]

    def get_analysis_progress(self) -> dict:
        with self.connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM emojis").fetchone()[0]
            analyzed = conn.execute(
                """
                SELECT COUNT(DISTINCT e.slug)
                FROM emojis e
                JOIN emoji_details d ON d.slug = e.slug
                WHERE d.category IS NOT NULL
                """
            ).fetchone()[0]
        return {"total": total, "analyzed": analyzed, "remaining": max(total - analyzed, 0)}

    # ------------------------------------------------------------------
    # Likes
    # ------------------------------------------------------------------

    def toggle_like(
        self,
        slug: str,
        locale: str,
        user_ip: str,
        user_id: str | None = None,
    ) -> bool:
        """Flip the like state for a user, creating it as liked on first use.

        Users are identified by ``user_id`` when given, else by IP.

        Returns:
            ``True`` if the emoji is now liked.
        """
        identity_column = "user_id" if user_id else "user_ip"
        now = utc_now()
        with self.connect() as conn:
            existing = conn.execute(
                f"SELECT id, is_active FROM emoji_likes WHERE slug = ? AND {identity_column} = ?",
                (slug, user_id or user_ip),
            ).fetchone()

            if existing:
                liked = not bool(existing["is_active"])
                conn.execute(
                    "UPDATE emoji_likes SET is_active = ?, updated_at = ? WHERE id = ?",
                    (int(liked), now, existing["id"]),
                )
            else:
                liked = True
                conn.execute(
                    """
                    INSERT INTO emoji_likes (
                        slug, locale, user_id, user_ip, is_active, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, 1, ?, ?)
                    """,
                    (slug, locale, user_id, user_ip, now, now),
                )

        logger.debug(f"Like on {slug} by {user_id or user_ip} is now {liked}")
        return liked

    def get_like_status(self, slug: str, user_ip: str, user_id: str | None = None) -> bool:
        identity_column = "user_id" if user_id else "user_ip"
        with self.connect() as conn:
            row = conn.execute(
                f"SELECT is_active FROM emoji_likes WHERE slug = ? AND {identity_column} = ?",
                (slug, user_id or user_ip),
            ).fetchone()
        return bool(row["is_active"]) if row else False

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def add_vote(self, slug: str, locale: str, user_ip: str, vote_type: Literal["up", "down"]) -> bool:
        """Record or switch a user's vote.

        Returns:
            ``False`` when the user had already cast the same vote.
        """
        with self.connect() as conn:
            existing = conn.execute(
                "SELECT vote_type FROM emoji_votes WHERE slug = ? AND locale = ? AND user_ip = ?",
                (slug, locale, user_ip),
            ).fetchone()

            if existing and existing["vote_type"] == vote_type:
                return False

            conn.execute(
                """
                INSERT INTO emoji_votes (slug, locale, user_ip, vote_type, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (slug, locale, user_ip) DO UPDATE SET
                    vote_type = excluded.vote_type
                """,
                (slug, locale, user_ip, vote_type, utc_now()),
            )
        return True

    def get_vote_stats(self, slug: str, locale: str) -> dict:
        with self.connect() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(CASE WHEN vote_type = 'up' THEN 1 END) AS likes_count,
                    COUNT(CASE WHEN vote_type = 'down' THEN 1 END) AS dislikes_count
                FROM emoji_votes
                WHERE slug = ? AND locale = ?
                """,
                (slug, locale),
            ).fetchone()
        return dict(row)
