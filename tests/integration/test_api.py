"""Integration tests for genmoji.api.main — FastAPI REST API endpoints.

All tests use the FastAPI TestClient with fake provider clients on
``app.state`` and a real SQLite store, so no network access occurs.  Tests
cover every router:

- ``GET /`` — Service banner.
- ``/genmoji`` — Fetch, list, search, keywords, groups, and generation.
- ``/action`` — Likes, votes, the action log, reports, and stats.
- ``/translation`` — Batch backfill and progress.
- ``/analysis`` — On-demand and stored-emoji analysis.
- Error envelope for 400, 404, and upstream failures.
"""

from __future__ import annotations

import pytest

from genmoji.core.image_analysis import ImageAnalysis

pytestmark = pytest.mark.integration

CLIENT = {"cf-connecting-ip": "198.51.100.4"}
OTHER_CLIENT = {"cf-connecting-ip": "198.51.100.5"}


def analyse(emoji_db, slug: str, keywords: list[str] | None = None, **overrides) -> None:
    fields = {
        "category": "animals_nature",
        "primary_color": "sunny yellow",
        "quality_score": 4,
        "subject_count": 1,
        "keywords": keywords or ["cute", "cat", "happy"],
    }
    fields.update(overrides)
    emoji_db.save_analysis_result(slug, "en", ImageAnalysis(**fields))


# ---------------------------------------------------------------------------
# Banner and error envelope.
# ---------------------------------------------------------------------------


class TestEnvelope:
    def test_banner(self, test_client):
        resp = test_client.get("/")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["name"] == "genmoji-api"

    def test_unknown_route_uses_error_envelope(self, test_client):
        resp = test_client.get("/nope")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Not Found"}

    def test_request_validation_is_400(self, test_client, make_emoji):
        make_emoji("happy cat")
        resp = test_client.post("/action/happy-cat/vote", json={"vote_type": "sideways"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert "vote_type" in body["error"]

    def test_cors_preflight(self, test_client):
        resp = test_client.options(
            "/genmoji/list",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"


# ---------------------------------------------------------------------------
# Generation.
# ---------------------------------------------------------------------------


class TestGenerate:
    def test_generate_returns_emoji_and_enriches(
        self, test_client, emoji_db, fake_vectors, fake_analyzer
    ):
        resp = test_client.post(
            "/genmoji/generate", json={"prompt": "happy cat"}, headers=CLIENT
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        emoji = body["data"]
        assert emoji["slug"] == emoji["base_slug"] == "happy-cat"
        assert emoji["image_url"] == "https://imagedelivery.test/image-1/public"
        assert emoji["model"] == "gemoji"
        assert emoji["has_reference_image"] is False

        # Background enrichment has run by the time the client returns.
        assert [e["slug"] for e in fake_vectors.stored] == ["happy-cat"]
        assert emoji_db.get_translation("happy-cat", "ja") == "[ja] happy cat"
        assert fake_analyzer.calls == [emoji["image_url"]]
        assert emoji_db.get_emoji_row("happy-cat")["ip"] == "198.51.100.4"

    def test_duplicate_is_not_enriched(self, test_client, fake_vectors):
        test_client.post("/genmoji/generate", json={"prompt": "happy cat"})
        resp = test_client.post("/genmoji/generate", json={"prompt": "happy cat"})

        emoji = resp.json()["data"]
        assert emoji["slug"] != emoji["base_slug"]
        assert len(fake_vectors.stored) == 1

    def test_enrichment_failure_does_not_fail_request(self, test_client, fake_vectors):
        fake_vectors.fail = True
        resp = test_client.post("/genmoji/generate", json={"prompt": "happy cat"})
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    def test_sticker_style(self, test_client, fake_replicate):
        resp = test_client.post(
            "/genmoji/generate", json={"prompt": "happy cat", "model": "sticker"}
        )
        assert resp.json()["data"]["model"] == "sticker"
        assert fake_replicate.background_removals == []

    def test_prompt_too_long(self, test_client, fake_replicate):
        resp = test_client.post("/genmoji/generate", json={"prompt": "a" * 281})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Prompt is too long"}
        assert fake_replicate.generations == []

    def test_prompt_missing(self, test_client):
        resp = test_client.post("/genmoji/generate", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Prompt is required"

    def test_unknown_locale(self, test_client):
        resp = test_client.post("/genmoji/generate", json={"prompt": "cat", "locale": "xx"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_translation_failure_is_500(self, test_client, fake_translator):
        fake_translator.failing.add("开心的猫")
        resp = test_client.post("/genmoji/generate", json={"prompt": "开心的猫", "locale": "zh"})
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Translation failed"}


# ---------------------------------------------------------------------------
# Fetching, listing, and search.
# ---------------------------------------------------------------------------


class TestFetch:
    def test_by_slug_with_localized_prompt_and_details(self, test_client, emoji_db, make_emoji):
        make_emoji("happy cat")
        emoji_db.upsert_translations("happy-cat", {"fr": "chat heureux"})
        analyse(emoji_db, "happy-cat")

        resp = test_client.get("/genmoji/by-slug/happy-cat", params={"locale": "fr"})

        data = resp.json()["data"]
        assert data["localized_prompt"] == "chat heureux"
        assert data["category"] == "animals_nature"
        assert data["keywords"] == ["cute", "cat", "happy"]

    def test_by_slug_missing(self, test_client):
        resp = test_client.get("/genmoji/by-slug/missing")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Emoji not found"}

    def test_by_base_slug_skips_reference_images(self, test_client, make_emoji):
        make_emoji("happy cat")
        make_emoji("happy cat", slug="happy-cat--abc")
        make_emoji("happy cat", slug="happy-cat--ref", has_reference_image=True)

        resp = test_client.get("/genmoji/by-base-slug/happy-cat")

        slugs = {e["slug"] for e in resp.json()["data"]}
        assert slugs == {"happy-cat", "happy-cat--abc"}

    def test_list_filters_by_category(self, test_client, emoji_db, make_emoji):
        make_emoji("happy cat")
        make_emoji("red car")
        analyse(emoji_db, "happy-cat")
        analyse(emoji_db, "red-car", category="travel_places", keywords=["red", "car", "fast"])

        resp = test_client.get("/genmoji/list", params={"category": "travel_places"})

        assert [e["slug"] for e in resp.json()["data"]] == ["red-car"]

    def test_list_latest_first_and_limit(self, test_client, make_emoji):
        for prompt in ("one", "two", "three"):
            make_emoji(prompt)
        resp = test_client.get("/genmoji/list", params={"limit": 2})
        assert [e["slug"] for e in resp.json()["data"]] == ["three", "two"]

    def test_list_rejects_unknown_sort(self, test_client):
        resp = test_client.get("/genmoji/list", params={"sort": "random"})
        assert resp.status_code == 400

    def test_groups(self, test_client, emoji_db, make_emoji):
        make_emoji("happy cat")
        analyse(emoji_db, "happy-cat")

        [group] = test_client.get("/genmoji/groups").json()["data"]

        assert group["category"] == "animals_nature"
        assert group["count"] == 1
        assert group["emojis"][0]["slug"] == "happy-cat"


class TestNonEnglishEmojiDetails:
    """Analysis is stored once per emoji but must be visible from every locale."""

    def generate_zh_emoji(self, test_client) -> dict:
        resp = test_client.post("/genmoji/generate", json={"prompt": "happy panda", "locale": "zh"})
        emoji = resp.json()["data"]
        assert emoji["locale"] == "zh"
        return emoji

    @pytest.mark.parametrize("locale", ["zh", "en"])
    def test_groups_include_enriched_zh_emoji(self, test_client, locale):
        self.generate_zh_emoji(test_client)

        groups = test_client.get("/genmoji/groups", params={"locale": locale}).json()["data"]

        [group] = groups
        assert group["category"] == "animals_nature"
        assert [e["slug"] for e in group["emojis"]] == ["happy-panda"]

    def test_list_filters_include_enriched_zh_emoji(self, test_client):
        self.generate_zh_emoji(test_client)

        by_category = test_client.get(
            "/genmoji/list", params={"locale": "zh", "category": "animals_nature"}
        ).json()["data"]
        by_color = test_client.get(
            "/genmoji/list", params={"locale": "zh", "color": "yellow"}
        ).json()["data"]

        assert [e["slug"] for e in by_category] == ["happy-panda"]
        assert [e["slug"] for e in by_color] == ["happy-panda"]

    def test_quality_sort_uses_enriched_analysis(self, test_client, emoji_db, make_emoji):
        make_emoji("plain dot")
        analyse(emoji_db, "plain-dot", quality_score=2)
        self.generate_zh_emoji(test_client)

        data = test_client.get("/genmoji/list", params={"sort": "quality"}).json()["data"]

        assert [e["slug"] for e in data] == ["happy-panda", "plain-dot"]

    def test_keyword_search_finds_enriched_zh_emoji(self, test_client):
        self.generate_zh_emoji(test_client)

        data = test_client.get("/genmoji/keywords/search", params={"keywords": "cute"}).json()[
            "data"
        ]

        assert [e["slug"] for e in data] == ["happy-panda"]


class TestSearch:
    def test_search_uses_vector_index(self, test_client, fake_vectors):
        fake_vectors.results = [{"slug": "happy-cat", "score": 0.9}]

        resp = test_client.get("/genmoji/search", params={"q": " cat ", "locale": "fr"})

        assert resp.json()["data"] == [{"slug": "happy-cat", "score": 0.9}]
        assert fake_vectors.searches[0]["prompt"] == "cat"
        assert fake_vectors.searches[0]["locale"] == "fr"

    def test_search_requires_query(self, test_client):
        resp = test_client.get("/genmoji/search")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Search query is required"

    def test_related_excludes_self_and_caps_limit(self, test_client, make_emoji, fake_vectors):
        emoji = make_emoji("happy cat")

        resp = test_client.get("/genmoji/related/happy-cat", params={"limit": 100})

        assert resp.status_code == 200
        [search] = fake_vectors.searches
        assert search["prompt"] == "happy cat"
        assert search["exclude_id"] == emoji["id"]
        assert search["limit"] == 30
        assert search["offset"] == 0

    def test_related_missing(self, test_client):
        assert test_client.get("/genmoji/related/missing").status_code == 404

    def test_keyword_search_is_case_insensitive(self, test_client, emoji_db, make_emoji):
        make_emoji("happy cat")
        make_emoji("red car")
        analyse(emoji_db, "happy-cat", keywords=["Cute", "Cat", "Happy"])
        analyse(emoji_db, "red-car", keywords=["red", "car", "fast"])

        resp = test_client.get("/genmoji/keywords/search", params={"keywords": "CAT, dog"})

        [match] = resp.json()["data"]
        assert match["slug"] == "happy-cat"
        assert match["match_count"] == 1

    def test_keyword_search_requires_keywords(self, test_client):
        resp = test_client.get("/genmoji/keywords/search", params={"keywords": " , "})
        assert resp.status_code == 400
        assert resp.json()["error"] == "At least one keyword is required"

    def test_popular_keywords(self, test_client, emoji_db, make_emoji):
        make_emoji("happy cat")
        make_emoji("sad cat")
        analyse(emoji_db, "happy-cat", keywords=["cute", "cat", "happy"])
        analyse(emoji_db, "sad-cat", keywords=["sad", "cat", "tears"])

        data = test_client.get("/genmoji/keywords/popular", params={"limit": 1}).json()["data"]

        assert data == [{"keyword": "cat", "count": 2}]


# ---------------------------------------------------------------------------
# Actions.
# ---------------------------------------------------------------------------


class TestLikesAndVotes:
    def test_like_toggles(self, test_client, make_emoji):
        make_emoji("happy cat")

        first = test_client.post("/action/happy-cat/like", json={}, headers=CLIENT)
        status = test_client.get("/action/happy-cat/like-status", headers=CLIENT)
        second = test_client.post("/action/happy-cat/like", json={}, headers=CLIENT)

        assert first.json()["data"] == {"liked": True}
        assert status.json()["data"] == {"liked": True}
        assert second.json()["data"] == {"liked": False}

    def test_like_missing_emoji(self, test_client):
        resp = test_client.post("/action/missing/like", json={})
        assert resp.status_code == 404

    def test_vote_and_switch(self, test_client, make_emoji):
        make_emoji("happy cat")

        up = test_client.post("/action/happy-cat/vote", json={"vote_type": "up"}, headers=CLIENT)
        again = test_client.post(
            "/action/happy-cat/vote", json={"vote_type": "up"}, headers=CLIENT
        )
        down = test_client.post(
            "/action/happy-cat/vote", json={"vote_type": "down"}, headers=CLIENT
        )
        test_client.post("/action/happy-cat/vote", json={"vote_type": "up"}, headers=OTHER_CLIENT)

        assert up.json()["data"] == {"changed": True, "likes_count": 1, "dislikes_count": 0}
        assert again.json()["data"]["changed"] is False
        assert down.json()["data"] == {"changed": True, "likes_count": 0, "dislikes_count": 1}
        votes = test_client.get("/action/happy-cat/votes").json()["data"]
        assert votes == {"likes_count": 1, "dislikes_count": 1}


class TestActionLog:
    @pytest.mark.parametrize("action_type", ["download", "copy"])
    def test_download_and_copy_return_url(self, test_client, make_emoji, action_type):
        emoji = make_emoji("happy cat")
        resp = test_client.post("/action/happy-cat", json={"action_type": action_type})
        assert resp.json() == {"success": True, "data": {"url": emoji["image_url"]}}

    def test_view_has_no_data(self, test_client, make_emoji):
        make_emoji("happy cat")
        resp = test_client.post("/action/happy-cat", json={"action_type": "view"})
        assert resp.json() == {"success": True}

    def test_unknown_action_type(self, test_client, make_emoji):
        make_emoji("happy cat")
        resp = test_client.post("/action/happy-cat", json={"action_type": "delete"})
        assert resp.status_code == 400

    def test_action_on_missing_emoji(self, test_client):
        resp = test_client.post("/action/missing", json={"action_type": "view"})
        assert resp.status_code == 404

    def test_rate_requires_score(self, test_client, make_emoji):
        make_emoji("happy cat")
        resp = test_client.post("/action/happy-cat", json={"action_type": "rate"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Rating score is required"

    def test_rate_once_per_user(self, test_client, make_emoji):
        make_emoji("happy cat")
        body = {"action_type": "rate", "details": {"score": 5}}

        first = test_client.post("/action/happy-cat", json=body, headers=CLIENT)
        second = test_client.post("/action/happy-cat", json=body, headers=CLIENT)
        other = test_client.post("/action/happy-cat", json=body, headers=OTHER_CLIENT)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["error"] == "Emoji already rated"
        assert other.status_code == 200

    def test_stats_after_recompute(self, test_client, make_emoji):
        make_emoji("happy cat")
        assert test_client.get("/action/happy-cat/stats").status_code == 404

        test_client.post("/action/happy-cat", json={"action_type": "view"})
        test_client.post(
            "/action/happy-cat",
            json={"action_type": "rate", "details": {"score": 4}},
            headers=CLIENT,
        )
        resp = test_client.post("/analysis/update-stats")
        assert resp.json()["data"]["updated"] == 1

        stats = test_client.get("/action/happy-cat/stats").json()["data"]
        assert stats["views_count"] == 1
        assert stats["rating_count"] == 1
        assert stats["average_rating"] == 4


class TestReports:
    def test_report_is_queued_and_moderated(self, test_client, make_emoji):
        make_emoji("happy cat")
        resp = test_client.post(
            "/action/happy-cat",
            json={
                "action_type": "report",
                "details": {"reason": "offensive", "description": "rude", "type": "image"},
            },
            headers=CLIENT,
        )
        assert resp.json() == {"success": True}

        [report] = test_client.get("/action/reports").json()["data"]
        assert report["slug"] == "happy-cat"
        assert report["reason"] == "offensive"
        assert report["details"] == "rude"
        assert report["status"] == "pending"

        # Reports refresh stats immediately.
        stats = test_client.get("/action/happy-cat/stats").json()["data"]
        assert stats["reports_count"] == 1

        update = test_client.post(
            f"/action/reports/{report['id']}/status", json={"status": "resolved"}
        )
        assert update.json()["data"] == {"id": report["id"], "status": "resolved"}
        assert test_client.get("/action/reports", params={"status": "pending"}).json()["data"] == []

    def test_report_without_reason_is_only_logged(self, test_client, make_emoji):
        make_emoji("happy cat")
        test_client.post("/action/happy-cat", json={"action_type": "report"})
        assert test_client.get("/action/reports").json()["data"] == []

    def test_unknown_report(self, test_client):
        resp = test_client.post("/action/reports/999/status", json={"status": "reviewed"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "Report not found"


# ---------------------------------------------------------------------------
# Translation backfill.
# ---------------------------------------------------------------------------


class TestTranslation:
    def test_batch_until_completed(self, test_client, emoji_db, make_emoji, fake_translator):
        make_emoji("happy cat")
        make_emoji("happy cat", slug="happy-cat--abc")
        make_emoji("red car")

        first = test_client.post("/translation/batch/fr", json={"batchSize": 10}).json()["data"]

        assert first["status"] == "in_progress"
        # Rows sharing a base slug are translated once.
        assert first["processed"] == 2
        assert first["progress"]["remaining"] == 0
        assert emoji_db.get_translation("happy-cat", "fr") == "[fr] happy cat"
        assert len(fake_translator.calls) == 2

        second = test_client.post(
            "/translation/batch/fr", json={"last_processed_id": first["last_processed_id"]}
        ).json()["data"]
        assert second["status"] == "completed"

    def test_progress(self, test_client, emoji_db, make_emoji):
        make_emoji("happy cat")
        make_emoji("red car")
        emoji_db.upsert_translations("happy-cat", {"ja": "幸せな猫"})

        progress = test_client.get("/translation/progress/ja").json()["data"]

        assert progress["total"] == 2
        assert progress["translated"] == 1
        assert progress["remaining"] == 1

    def test_unsupported_locale(self, test_client):
        assert test_client.get("/translation/progress/xx").status_code == 400
        assert test_client.post("/translation/batch/xx", json={}).status_code == 400

    def test_failed_translation_fails_batch(self, test_client, emoji_db, make_emoji, fake_translator):
        make_emoji("happy cat")
        fake_translator.failing.add("happy cat")

        resp = test_client.post("/translation/batch/de", json={})

        assert resp.status_code == 500
        assert emoji_db.get_translation("happy-cat", "de") is None


# ---------------------------------------------------------------------------
# Image analysis.
# ---------------------------------------------------------------------------


class TestAnalysis:
    def test_analyze_single(self, test_client):
        resp = test_client.post("/analysis/analyze", json={"imageUrl": "https://a.test/x.png"})
        data = resp.json()["data"]
        assert data["category"] == "animals_nature"
        assert data["primaryColor"] == "sunny yellow"

    def test_analyze_failure_is_500(self, test_client, fake_analyzer):
        fake_analyzer.fail = True
        resp = test_client.post("/analysis/analyze", json={"image_url": "https://a.test/x.png"})
        assert resp.status_code == 500
        assert resp.json()["success"] is False

    def test_batch_reports_per_image_status(self, test_client, fake_analyzer):
        resp = test_client.post(
            "/analysis/batch", json={"image_urls": ["https://a.test/1.png", "https://a.test/2.png"]}
        )
        data = resp.json()["data"]
        assert data["summary"]["total"] == 2
        assert data["summary"]["successful"] == 2
        assert data["summary"]["success_rate"] == "100.0%"
        assert [r["image_url"] for r in data["results"]] == [
            "https://a.test/1.png",
            "https://a.test/2.png",
        ]

        fake_analyzer.fail = True
        resp = test_client.post("/analysis/batch", json={"image_urls": ["https://a.test/3.png"]})
        [result] = resp.json()["data"]["results"]
        assert result["status"] == "error"
        assert resp.json()["data"]["summary"]["failed"] == 1

    def test_batch_over_limit(self, test_client):
        resp = test_client.post(
            "/analysis/batch", json={"image_urls": ["a", "b", "c"], "batch_size": 2}
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Batch size limit exceeded. Maximum allowed: 2"

    def test_batch_size_must_be_an_integer(self, test_client):
        resp = test_client.post(
            "/analysis/batch", json={"image_urls": ["https://a.test/1.png"], "batch_size": [1]}
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert "batch_size" in body["error"]

    def test_process_local_until_completed(self, test_client, emoji_db, make_emoji):
        first_emoji = make_emoji("happy cat")
        second_emoji = make_emoji("red car")

        first = test_client.post("/analysis/process/local", json={"batchSize": 1}).json()["data"]
        assert first["status"] == "in_progress"
        assert first["summary"]["last_processed_id"] == first_emoji["id"]
        assert first["limits"]["max_batch_size"] == 200
        assert emoji_db.get_emoji_details("happy-cat", "en")["category"] == "animals_nature"

        second = test_client.post(
            "/analysis/process/local",
            json={"batch_size": 1, "last_processed_id": first["summary"]["last_processed_id"]},
        ).json()["data"]
        assert second["summary"]["last_processed_id"] == second_emoji["id"]
        assert second["progress"] == {"total": 2, "analyzed": 2, "remaining": 0}

        done = test_client.post("/analysis/process/local", json={}).json()["data"]
        assert done["status"] == "completed"

    def test_progress(self, test_client, emoji_db, make_emoji):
        make_emoji("happy cat")
        make_emoji("red car")
        analyse(emoji_db, "happy-cat")

        progress = test_client.get("/analysis/progress").json()["data"]

        assert progress == {"total": 2, "analyzed": 1, "remaining": 1}
