"""Tests for the Redis job scheduler and worker."""

import pytest

from feedsync.core.jobs import STEP_START, FeedJobWorker


class RecordingHandler:
    """Job handler producing a fixed number of non-empty batches."""

    def __init__(self, batches=2, fail_on=None):
        self.batches = batches
        self.fail_on = fail_on
        self.calls = []

    def handle_start(self):
        self.calls.append("start")
        if self.fail_on == "start":
            raise RuntimeError("disk full")

    def run_batch(self, batch_number, filters):
        self.calls.append(("batch", batch_number, filters))
        if self.fail_on == batch_number:
            raise RuntimeError(f"batch {batch_number} broke")
        return batch_number <= self.batches

    def handle_end(self):
        self.calls.append("end")


def test_create_job_stores_queued_state(scheduler):
    job_id = scheduler.create_job("promotions_feed_generator", {"status": "publish"})

    state = scheduler.get_job_state(job_id)
    assert state["name"] == "promotions_feed_generator"
    assert state["status"] == "queued"
    assert state["filters"] == {"status": "publish"}
    assert state["batch_number"] == 0


def test_unknown_job_state_is_none(scheduler):
    assert scheduler.get_job_state("missing") is None
    assert scheduler.dispatch("missing") is False


def test_dispatch_queues_start_step(scheduler):
    job_id = scheduler.create_job("promotions_feed_generator")

    assert scheduler.dispatch(job_id) is True
    assert scheduler.get_job_state(job_id)["status"] == "dispatched"
    assert scheduler.pop_step() == {"job_id": job_id, "step": STEP_START, "batch_number": 0}


def test_worker_runs_start_batches_end(scheduler, worker):
    handler = RecordingHandler(batches=2)
    scheduler.register("promotions_feed_generator", handler)
    job_id = scheduler.create_job("promotions_feed_generator", {"a": 1})
    scheduler.dispatch(job_id)

    steps = worker.run_until_idle()

    assert steps == 5
    assert handler.calls == [
        "start",
        ("batch", 1, {"a": 1}),
        ("batch", 2, {"a": 1}),
        ("batch", 3, {"a": 1}),
        "end",
    ]
    state = scheduler.get_job_state(job_id)
    assert state["status"] == "done"
    assert state["batch_number"] == 3
    assert worker.run_next() is None


def test_second_dispatch_is_skipped_while_running(scheduler, worker):
    handler = RecordingHandler(batches=1)
    scheduler.register("promotions_feed_generator", handler)
    first = scheduler.create_job("promotions_feed_generator")
    second = scheduler.create_job("promotions_feed_generator")

    assert scheduler.dispatch(first) is True
    assert scheduler.dispatch(second) is False
    assert scheduler.get_job_state(second)["status"] == "skipped"

    worker.run_until_idle()
    assert handler.calls.count("start") == 1

    third = scheduler.create_job("promotions_feed_generator")
    assert scheduler.dispatch(third) is True


def test_different_names_run_independently(scheduler):
    a = scheduler.create_job("promotions_feed_generator")
    b = scheduler.create_job("navigation_menu_feed_generator")

    assert scheduler.dispatch(a) is True
    assert scheduler.dispatch(b) is True


def test_failing_step_marks_job_failed_and_releases_lock(scheduler, worker, fake_redis):
    handler = RecordingHandler(batches=3, fail_on=2)
    scheduler.register("promotions_feed_generator", handler)
    job_id = scheduler.create_job("promotions_feed_generator")
    scheduler.dispatch(job_id)

    worker.run_until_idle()

    state = scheduler.get_job_state(job_id)
    assert state["status"] == "failed"
    assert state["error"] == "batch 2 broke"
    assert "end" not in handler.calls
    assert fake_redis.get("feedjob:lock:promotions_feed_generator") is None


def test_missing_handler_fails_job(scheduler, worker):
    job_id = scheduler.create_job("unregistered_feed_generator")
    scheduler.dispatch(job_id)

    assert worker.run_next() == job_id
    assert scheduler.get_job_state(job_id)["status"] == "failed"


def test_release_lock_ignores_other_owner(scheduler, fake_redis):
    fake_redis.set("feedjob:lock:promotions_feed_generator", "other-job")

    scheduler.release_lock("promotions_feed_generator", "my-job")

    assert fake_redis.get("feedjob:lock:promotions_feed_generator") == "other-job"


def test_step_of_expired_job_is_dropped(scheduler):
    scheduler.enqueue_step("gone", STEP_START)
    worker = FeedJobWorker(scheduler)

    assert worker.run_next() == "gone"
    assert worker.run_next() is None


def test_each_step_renews_the_run_lock(scheduler, worker, fake_redis):
    handler = RecordingHandler(batches=2)
    scheduler.register("promotions_feed_generator", handler)
    job_id = scheduler.create_job("promotions_feed_generator")
    scheduler.dispatch(job_id)
    lock_key = "feedjob:lock:promotions_feed_generator"

    worker.run_next()
    fake_redis.expirations.pop(lock_key)
    worker.run_next()

    assert fake_redis.expirations[lock_key] == 60
    assert fake_redis.get(lock_key) == job_id


def test_expired_lock_is_taken_back_between_steps(scheduler, worker, fake_redis):
    handler = RecordingHandler(batches=1)
    scheduler.register("promotions_feed_generator", handler)
    job_id = scheduler.create_job("promotions_feed_generator")
    scheduler.dispatch(job_id)
    worker.run_next()

    fake_redis.delete("feedjob:lock:promotions_feed_generator")
    worker.run_next()

    assert fake_redis.get("feedjob:lock:promotions_feed_generator") == job_id
    second = scheduler.create_job("promotions_feed_generator")
    assert scheduler.dispatch(second) is False


def test_run_that_lost_its_lock_stops(scheduler, worker, fake_redis):
    handler = RecordingHandler(batches=3)
    scheduler.register("promotions_feed_generator", handler)
    first = scheduler.create_job("promotions_feed_generator")
    scheduler.dispatch(first)
    worker.run_next()
    worker.run_next()

    fake_redis.delete("feedjob:lock:promotions_feed_generator")
    second = scheduler.create_job("promotions_feed_generator")
    assert scheduler.dispatch(second) is True

    worker.run_until_idle()

    first_state = scheduler.get_job_state(first)
    assert first_state["status"] == "failed"
    assert first_state["error"] == "Run lock held by another run"
    assert first_state["batch_number"] == 1
    assert scheduler.get_job_state(second)["status"] == "done"
    assert handler.calls.count("start") == 2
    assert handler.calls.count("end") == 1
    assert fake_redis.get("feedjob:lock:promotions_feed_generator") is None


class StopWorker(Exception):
    pass


def test_idle_callback_runs_when_queue_is_empty(worker, monkeypatch):
    calls = []

    def on_idle():
        calls.append("idle")
        raise RuntimeError("redis unavailable")

    def stop(seconds):
        raise StopWorker()

    monkeypatch.setattr("feedsync.core.jobs.time.sleep", stop)

    with pytest.raises(StopWorker):
        worker.run_forever(idle_sleep=0, on_idle=on_idle)
    assert calls == ["idle"]
