"""Tests for batch feed generators."""

import json
import os

import pytest
import redis

from feedsync.core.events import FeedEventEmitter
from feedsync.core.feed.errors import FileWriteError
from feedsync.core.feed.generator import (
    FeedGenerator,
    NavigationMenuFeedGenerator,
    ShippingProfilesFeedGenerator,
    generation_completed_event,
)
from feedsync.core.feed.sources import ListItemSource
from feedsync.core.feed.writers import CsvFeedFileWriter, JsonFeedFileWriter

from conftest import FakeRedis


class CountingCsvWriter(CsvFeedFileWriter):
    """Counts appends to the temporary file."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes = 0

    def write_temp_feed_file(self, items):
        self.writes += 1
        super().write_temp_feed_file(items)


@pytest.fixture
def csv_writer(tmp_path):
    return CountingCsvWriter(
        "promotions",
        tmp_path,
        secret_getter=lambda: "sec",
        header_row=["retailer_id", "title"]
    )


def promotions(count):
    return [{"retailer_id": i, "title": f"CODE{i}"} for i in range(1, count + 1)]


def test_name_and_registration(scheduler, events, csv_writer):
    generator = FeedGenerator(scheduler, csv_writer, "promotions", events)

    assert generator.get_name() == "promotions_feed_generator"
    assert generator.get_plugin_name() == "facebook-for-woocommerce"
    assert scheduler.get_handler("promotions_feed_generator") is generator


def test_batch_sizes():
    assert FeedGenerator.BATCH_SIZE == 1
    assert ShippingProfilesFeedGenerator.BATCH_SIZE == 100


def test_runs_one_batch_per_item_then_stops(scheduler, events, csv_writer):
    generator = FeedGenerator(
        scheduler, csv_writer, "promotions", events, source=ListItemSource(promotions(3))
    )
    generator.handle_start()

    results = [generator.run_batch(n, {}) for n in range(1, 5)]

    assert results == [True, True, True, False]
    assert csv_writer.writes == 3
    with open(csv_writer.get_temp_file_path(), encoding="utf-8") as f:
        assert f.read() == "retailer_id,title\n1,CODE1\n2,CODE2\n3,CODE3\n"


def test_empty_batch_does_not_write(scheduler, events, csv_writer):
    generator = FeedGenerator(scheduler, csv_writer, "promotions", events, source=ListItemSource([]))
    generator.handle_start()

    assert generator.run_batch(1, {}) is False
    assert csv_writer.writes == 0


def test_no_source_means_empty_feed(scheduler, events, csv_writer):
    generator = FeedGenerator(scheduler, csv_writer, "promotions", events)
    assert generator.get_items_for_batch(1, {}) == []


def test_process_items_writes_once_per_call(scheduler, events, csv_writer):
    seen = []

    class RecordingGenerator(FeedGenerator):
        def process_item(self, item, filters):
            seen.append(item["retailer_id"])

    generator = RecordingGenerator(scheduler, csv_writer, "promotions", events)
    generator.handle_start()

    generator.process_items(promotions(5), {})

    assert seen == [1, 2, 3, 4, 5]
    assert csv_writer.writes == 1


def test_process_items_with_no_items_still_writes_once(scheduler, events, csv_writer):
    generator = FeedGenerator(scheduler, csv_writer, "promotions", events)
    generator.handle_start()

    generator.process_items([], {})

    assert csv_writer.writes == 1
    with open(csv_writer.get_temp_file_path(), encoding="utf-8") as f:
        assert f.read() == "retailer_id,title\n"


def test_failed_promotion_keeps_published_file(scheduler, events, csv_writer, monkeypatch):
    generator = FeedGenerator(
        scheduler, csv_writer, "promotions", events, source=ListItemSource(promotions(1))
    )
    csv_writer.write_feed_file([{"retailer_id": 9, "title": "OLD"}])
    generator.handle_start()
    generator.run_batch(1, {})

    def refuse_rename(src, dst):
        raise OSError("device busy")

    monkeypatch.setattr("feedsync.core.feed.writers.os.replace", refuse_rename)

    with pytest.raises(FileWriteError):
        generator.handle_end()
    with open(csv_writer.get_file_path(), encoding="utf-8") as f:
        assert f.read() == "retailer_id,title\n9,OLD\n"


def test_completion_fires_after_promotion(scheduler, events, csv_writer):
    generator = FeedGenerator(
        scheduler, csv_writer, "promotions", events, source=ListItemSource(promotions(1))
    )
    observed = []

    def on_completed(**payload):
        observed.append(os.path.isfile(csv_writer.get_file_path()))

    events.subscribe(generation_completed_event("promotions"), on_completed)
    generator.handle_start()
    generator.run_batch(1, {})
    generator.handle_end()

    assert observed == [True]
    assert not os.path.exists(csv_writer.get_temp_file_path())


def test_failed_promotion_does_not_fire_completion(scheduler, events, csv_writer):
    generator = FeedGenerator(scheduler, csv_writer, "promotions", events)
    fired = []
    events.subscribe(generation_completed_event("promotions"), lambda **payload: fired.append(1))
    csv_writer.create_feed_directory()

    with pytest.raises(FileWriteError):
        generator.handle_end()
    assert fired == []


def test_completion_is_mirrored_to_redis_stream(scheduler, events, csv_writer, fake_redis):
    generator = FeedGenerator(scheduler, csv_writer, "promotions", events)
    generator.handle_start()
    generator.handle_end()

    entries = fake_redis.streams["feed:promotions:events"]
    assert entries[-1]["event"] == "promotions_feed_generation_completed"
    assert "ts" in json.loads(entries[-1]["data"])


class StreamDownRedis(FakeRedis):
    def xadd(self, key, fields, maxlen=None, approximate=True):
        raise redis.ConnectionError("Connection refused")


def test_stream_failure_does_not_block_listeners(scheduler, csv_writer):
    events = FeedEventEmitter(StreamDownRedis())
    generator = FeedGenerator(
        scheduler, csv_writer, "promotions", events, source=ListItemSource(promotions(1))
    )
    uploads = []
    events.subscribe(generation_completed_event("promotions"), lambda **payload: uploads.append(payload))
    generator.handle_start()
    generator.run_batch(1, {})

    generator.handle_end()

    assert uploads == [{}]
    assert os.path.isfile(csv_writer.get_file_path())


class TestNavigationMenu:
    def test_whole_menu_in_first_batch_only(self, scheduler, events, tmp_path):
        writer = JsonFeedFileWriter("navigation_menu", tmp_path, secret_getter=lambda: "s")
        menu = [{"id": i, "title": f"Item {i}"} for i in range(1, 151)]
        generator = NavigationMenuFeedGenerator(
            scheduler, writer, "navigation_menu", events, source=ListItemSource(menu)
        )
        generator.handle_start()

        assert generator.run_batch(1, {}) is True
        assert generator.run_batch(2, {}) is False
        generator.handle_end()

        with open(writer.get_file_path(), encoding="utf-8") as f:
            assert json.load(f) == menu

    def test_empty_menu_publishes_empty_array(self, scheduler, events, tmp_path):
        writer = JsonFeedFileWriter("navigation_menu", tmp_path, secret_getter=lambda: "s")
        generator = NavigationMenuFeedGenerator(
            scheduler, writer, "navigation_menu", events, source=ListItemSource([])
        )
        generator.handle_start()

        assert generator.run_batch(1, {}) is False
        generator.handle_end()

        with open(writer.get_file_path(), encoding="utf-8") as f:
            assert f.read() == "[]"
