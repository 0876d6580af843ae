#!/usr/bin/env python3
"""
Run the feed job worker.
Executes queued feed generation steps (start, batches, end) from Redis.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path to import feedsync modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from feedsync.config import get_settings
from feedsync.core.jobs import FeedJobWorker
from feedsync.deps import (
    get_country_override_feed,
    get_feed_context,
    get_feed_manager,
    get_language_override_feed,
)


logger = logging.getLogger("feedsync.worker")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Feed generation worker")
    parser.add_argument(
        "--regenerate",
        action="store_true",
        help="Queue a regeneration of every feed before processing"
    )
    parser.add_argument(
        "--no-schedule",
        action="store_true",
        help="Do not queue the regenerations that are due by schedule"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Exit when the queue is empty instead of polling"
    )
    return parser.parse_args(argv)


def queue_due_feeds(manager, override_feeds):
    """Queue every feed whose scheduled regeneration is due."""
    for feed_type, result in manager.run_scheduled_feeds().items():
        logger.info(f"Scheduled {feed_type}: {result['status']}")
    for feed in override_feeds:
        jobs = feed.run_scheduled_generation()
        if jobs:
            logger.info(f"Scheduled {feed.get_data_stream_name()}: {len(jobs)} run(s)")


def main(argv=None):
    """Register every feed generator and process the job queue."""
    args = parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    manager = get_feed_manager()
    manager.load_all()
    override_feeds = [
        feed for feed in (get_language_override_feed(), get_country_override_feed())
        if feed is not None
    ]
    for feed in override_feeds:
        feed.load_generators()

    if args.regenerate:
        for feed_type, result in manager.run_all_feed_uploads().items():
            logger.info(f"{feed_type}: {result['status']}")
        for feed in override_feeds:
            feed.regenerate_feed()

    def on_idle():
        queue_due_feeds(manager, override_feeds)

    if not args.no_schedule:
        on_idle()

    worker = FeedJobWorker(get_feed_context().scheduler)
    if args.once:
        steps = worker.run_until_idle()
        logger.info(f"Queue drained after {steps} step(s)")
        return

    try:
        worker.run_forever(idle_sleep=settings.scheduler_idle_sleep, on_idle=None if args.no_schedule else on_idle)
    except KeyboardInterrupt:
        logger.info("Feed job worker stopped")


if __name__ == "__main__":
    main()
