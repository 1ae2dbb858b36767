"""Action log, moderation reports, and aggregated emoji statistics.

User interactions are appended to ``emoji_actions`` and never updated.
``emoji_stats`` is a cache derived from that log: :meth:`StatsStore.update_emoji_stats`
re-aggregates every action for one ``(slug, locale)`` and upserts the result,
so recomputation is idempotent and safe to run at any time.

Aggregates
----------
======================  ====================================================
Column                  Definition
======================  ====================================================
views/likes/...         Count of actions of that type
rating_count            Count of ``rate`` actions
total_rating            Sum of ``$.score`` over ``rate`` action details
average_rating          ``total_rating / rating_count`` (0 without ratings)
vote_count              Count of ``like`` and ``report`` actions
total_actions_count     Count of all actions
======================  ====================================================
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from genmoji.core.database import EmojiDB, utc_now

logger = logging.getLogger(__name__)

ActionType = Literal[
    "view", "like", "download", "copy", "report", "rate", "share", "upvote", "downvote"
]
ReportReason = Literal["inappropriate", "deceptive", "offensive"]
ReportStatus = Literal["pending", "reviewed", "resolved"]

STALE_AFTER = timedelta(minutes=5)

_STATS_FIELDS = (
    "views_count",
    "likes_count",
    "downloads_count",
    "copies_count",
    "reports_count",
    "rating_count",
    "total_rating",
    "average_rating",
    "vote_count",
    "total_actions_count",
)


class StatsStore:
    """Action, report, and stats operations over an :class:`EmojiDB`."""

    def __init__(self, db: EmojiDB):
        self.db = db

    # ------------------------------------------------------------------
    # Actions and reports
    # ------------------------------------------------------------------

    def record_action(
        self,
        slug: str,
        locale: str,
        user_ip: str,
        action_type: ActionType,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        with self.db.connect() as conn:
            self._insert_action(conn, slug, locale, user_ip, action_type, user_id, details)

    @staticmethod
    def _insert_action(
        conn: sqlite3.Connection,
        slug: str,
        locale: str,
        user_ip: str,
        action_type: str,
        user_id: str | None,
        details: dict[str, Any] | None,
    ) -> None:
        conn.execute(
            """
            INSERT INTO emoji_actions (
                slug, locale, user_id, user_ip, action_type, action_details, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                slug,
                locale,
                user_id,
                user_ip,
                action_type,
                json.dumps(details) if details else None,
                utc_now(),
            ),
        )

    def has_user_action(
        self,
        slug: str,
        locale: str,
        user_ip: str,
        action_type: ActionType,
        user_id: str | None = None,
    ) -> bool:
        """Whether the user (by id or IP) already performed ``action_type``."""
        if user_id:
            query = """
                SELECT 1 FROM emoji_actions
                WHERE slug = ? AND locale = ? AND (user_id = ? OR user_ip = ?) AND action_type = ?
                LIMIT 1
            """
            params: tuple = (slug, locale, user_id, user_ip, action_type)
        else:
            query = """
                SELECT 1 FROM emoji_actions
                WHERE slug = ? AND locale = ? AND user_ip = ? AND action_type = ?
                LIMIT 1
            """
            params = (slug, locale, user_ip, action_type)

        with self.db.connect() as conn:
            return conn.execute(query, params).fetchone() is not None

    def record_report(
        self,
        slug: str,
        locale: str,
        reason: ReportReason,
        details: str | None = None,
        user_id: str | None = None,
        user_ip: str = "system",
        action_details: dict[str, Any] | None = None,
    ) -> int:
        """Queue a report and log the matching ``report`` action atomically.

        Stats are refreshed afterwards on a best-effort basis; a refresh
        failure is logged and does not fail the report.
        """
        with self.db.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO emoji_reports (slug, locale, user_id, reason, details, status, created_at)
                VALUES (?, ?, ?, ?, ?, 'pending', ?)
                """,
                (slug, locale, user_id, reason, details, utc_now()),
            )
            report_id = cursor.lastrowid
            self._insert_action(
                conn,
                slug,
                locale,
                user_ip,
                "report",
                user_id,
                action_details or {"reason": reason, "details": details},
            )

        try:
            self.update_emoji_stats(slug, locale)
        except sqlite3.Error as e:
            logger.error(f"Failed to update stats after report on {slug}: {e}", exc_info=True)

        return report_id

    def list_reports(self, status: ReportStatus | None = None, limit: int = 50) -> list[dict]:
        query = "SELECT * FROM emoji_reports"
        params: list = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self.db.connect() as conn:
            return [dict(row) for row in conn.execute(query, params).fetchall()]

    def update_report_status(self, report_id: int, status: ReportStatus) -> bool:
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE emoji_reports SET status = ? WHERE id = ?",
                (status, report_id),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def update_emoji_stats(self, slug: str, locale: str) -> dict:
        """Re-aggregate the action log for ``(slug, locale)`` and upsert the stats row.

        Returns:
            The stored stats row.
        """
        with self.db.connect() as conn:
            counts = conn.execute(
                """
                SELECT
                    COUNT(CASE WHEN action_type = 'view' THEN 1 END) AS views_count,
                    COUNT(CASE WHEN action_type = 'like' THEN 1 END) AS likes_count,
                    COUNT(CASE WHEN action_type = 'download' THEN 1 END) AS downloads_count,
                    COUNT(CASE WHEN action_type = 'copy' THEN 1 END) AS copies_count,
                    COUNT(CASE WHEN action_type = 'report' THEN 1 END) AS reports_count,
                    COUNT(CASE WHEN action_type = 'rate' THEN 1 END) AS rating_count,
                    COALESCE(SUM(CASE
                        WHEN action_type = 'rate'
                        THEN CAST(json_extract(action_details, '$.score') AS INTEGER)
                        ELSE 0
                    END), 0) AS total_rating,
                    COUNT(CASE WHEN action_type IN ('like', 'report') THEN 1 END) AS vote_count,
                    COUNT(*) AS total_actions_count
                FROM emoji_actions
                WHERE slug = ? AND locale = ?
                """,
                (slug, locale),
            ).fetchone()

            stats = dict(counts)
            stats["average_rating"] = (
                stats["total_rating"] / stats["rating_count"] if stats["rating_count"] else 0.0
            )

            conn.execute(
                f"""
                INSERT INTO emoji_stats (slug, locale, {", ".join(_STATS_FIELDS)}, last_updated_at)
                VALUES (?, ?, {", ".join("?" for _ in _STATS_FIELDS)}, ?)
                ON CONFLICT (slug, locale) DO UPDATE SET
                    {", ".join(f"{field} = excluded.{field}" for field in _STATS_FIELDS)},
                    last_updated_at = excluded.last_updated_at
                """,
                (slug, locale, *(stats[field] for field in _STATS_FIELDS), utc_now()),
            )

        logger.debug(f"Recomputed stats for {slug} ({locale}): {stats}")
        return self.get_emoji_stats(slug, locale)

    def refresh_stale_stats(self, max_age: timedelta = STALE_AFTER, limit: int = 100) -> int:
        """Recompute stats that are missing or older than ``max_age``.

        Returns:
            Number of ``(slug, locale)`` pairs recomputed.
        """
        threshold = (datetime.now(timezone.utc) - max_age).isoformat()
        with self.db.connect() as conn:
            pending = conn.execute(
                """
                SELECT DISTINCT a.slug, a.locale
                FROM emoji_actions a
                LEFT JOIN emoji_stats s ON a.slug = s.slug AND a.locale = s.locale
                WHERE s.last_updated_at IS NULL OR s.last_updated_at < ?
                LIMIT ?
                """,
                (threshold, limit),
            ).fetchall()

        for row in pending:
            self.update_emoji_stats(row["slug"], row["locale"])
        return len(pending)

    def update_all_emoji_stats(self) -> int:
        """Recompute stats for every ``(slug, locale)`` that has actions."""
        with self.db.connect() as conn:
            pairs = conn.execute("SELECT DISTINCT slug, locale FROM emoji_actions").fetchall()

        for row in pairs:
            self.update_emoji_stats(row["slug"], row["locale"])
        logger.info(f"Recomputed stats for {len(pairs)} emojis")
        return len(pairs)

    def get_emoji_stats(self, slug: str, locale: str) -> dict | None:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM emoji_stats WHERE slug = ? AND locale = ?",
                (slug, locale),
            ).fetchone()
        return dict(row) if row else None
