"""Tests for the feed HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from feedsync.core.feed.country import CountryOverrideFeed, StaticCountryFeedData
from feedsync.core.feed.localization import LanguageOverrideFeed, StaticLanguageFeedData
from feedsync.core.feed.manager import FeedManager
from feedsync.core.feed.models import OPTION_INTEGRATION_ID
from feedsync.core.feed.sources import ListItemSource
from feedsync.deps import get_country_override_feed, get_feed_manager, get_language_override_feed
from feedsync.main import app


@pytest.fixture
def manager(context):
    context.sources["promotions"] = ListItemSource([{"retailer_id": 1, "title": "SAVE5"}])
    return FeedManager(context)


@pytest.fixture
def language_feed(context):
    return LanguageOverrideFeed(context, StaticLanguageFeedData({
        "es_ES": {"columns": ["id", "title"], "rows": [{"id": "1", "title": "Hola"}]}
    }))


@pytest.fixture
def country_feed(context):
    return CountryOverrideFeed(context, StaticCountryFeedData({
        "FR": {"currency": "EUR", "rows": [{"id": "1", "price": 9.5}]}
    }))


@pytest.fixture
def client(manager, language_feed, country_feed):
    app.dependency_overrides[get_feed_manager] = lambda: manager
    app.dependency_overrides[get_language_override_feed] = lambda: language_feed
    app.dependency_overrides[get_country_override_feed] = lambda: country_feed
    yield TestClient(app)
    app.dependency_overrides.clear()


def generate(feed, worker):
    feed.regenerate_feed()
    worker.run_until_idle()


def test_list_feeds(client, manager):
    response = client.get("/api/v1/feeds")

    assert response.status_code == 200
    items = {item["feed_type"]: item for item in response.json()["items"]}
    assert set(items) == set(FeedManager.get_active_feed_types())
    assert items["promotions"]["generated"] is False
    assert items["promotions"]["url"] == manager.get_feed_instance("promotions").get_feed_data_url()


def test_serves_generated_file_by_exact_name(client, manager, worker):
    feed = manager.get_feed_instance("promotions")
    generate(feed, worker)

    response = client.get(f"/api/v1/feeds/promotions/{feed.feed_writer.get_file_name()}")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text == "retailer_id,title\n1,SAVE5\n"


def test_wrong_file_name_is_not_found(client, manager, worker):
    generate(manager.get_feed_instance("promotions"), worker)

    response = client.get("/api/v1/feeds/promotions/promotions_feed_guess.csv")

    assert response.status_code == 404


def test_not_generated_is_not_found(client, manager):
    file_name = manager.get_feed_instance("navigation_menu").feed_writer.get_file_name()

    response = client.get(f"/api/v1/feeds/navigation_menu/{file_name}")

    assert response.status_code == 404
    assert response.json()["detail"] == "Feed has not been generated yet"


def test_unknown_feed_type(client):
    response = client.get("/api/v1/feeds/coupons/coupons_feed_x.csv")

    assert response.status_code == 404
    assert response.json()["detail"] == "Feed type coupons does not exist."


def test_regenerate_queues_all_feeds(client, context):
    context.options.set(OPTION_INTEGRATION_ID, "cpi-1")

    response = client.post("/api/v1/feeds/regenerate")

    assert response.status_code == 202
    body = response.json()
    assert {r["status"] for r in body["results"].values()} == {"queued"}
    assert list(body["language_jobs"]) == ["es_ES"]
    assert list(body["country_jobs"]) == ["FR"]

    again = client.post("/api/v1/feeds/regenerate").json()
    assert {r["status"] for r in again["results"].values()} == {"skipped"}


class TestLanguageFiles:
    def test_requires_matching_secret(self, client, language_feed, worker, context):
        context.options.set(OPTION_INTEGRATION_ID, "cpi-1")
        language_feed.regenerate_feed()
        worker.run_until_idle()
        file_name = language_feed.get_feed_writer("es_ES").get_file_name()

        missing = client.get(f"/api/v1/feeds/language_override/{file_name}")
        wrong = client.get(f"/api/v1/feeds/language_override/{file_name}", params={"secret": "nope"})
        ok = client.get(
            f"/api/v1/feeds/language_override/{file_name}",
            params={"secret": language_feed.get_feed_secret()}
        )

        assert missing.status_code == 404
        assert wrong.status_code == 404
        assert ok.status_code == 200
        assert ok.text == "id,title\n1,Hola\n"

    def test_status(self, client, context):
        context.options.set_map_value("language_feed_ids", "es_ES", "44")

        response = client.get("/api/v1/feeds/language_override/status")

        assert response.status_code == 200
        assert response.json()["languages"]["es_ES"] == {
            "feed_id": "44",
            "status": "error",
            "error": "catalog API not configured",
            "data": None,
        }


class TestCountryFiles:
    def test_serves_file_by_secret_name(self, client, country_feed, worker, context):
        context.options.set(OPTION_INTEGRATION_ID, "cpi-1")
        country_feed.regenerate_feed()
        worker.run_until_idle()
        file_name = country_feed.get_feed_writer("FR").get_file_name()

        ok = client.get(f"/api/v1/feeds/country_override/{file_name}")
        wrong = client.get("/api/v1/feeds/country_override/country_override_fr_guess.csv")

        assert ok.status_code == 200
        assert ok.text == "id,override,price\n1,FR,9.50 EUR\n"
        assert wrong.status_code == 404
