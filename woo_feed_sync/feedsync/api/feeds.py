"""
Feed API endpoints: list feeds, serve promoted files, trigger regeneration.
"""

import os
import secrets
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, HTTPException, status, Depends, Query
from fastapi.responses import FileResponse

from feedsync.deps import get_country_override_feed, get_feed_manager, get_language_override_feed
from feedsync.core.feed.country import COUNTRY_OVERRIDE, CountryOverrideFeed
from feedsync.core.feed.errors import InvalidFeedTypeError
from feedsync.core.feed.localization import LANGUAGE_OVERRIDE, LanguageOverrideFeed
from feedsync.core.feed.manager import FeedManager
from feedsync.schemas.feed import (
    FeedInfo,
    FeedListResponse,
    FeedRegenerateResponse,
    FeedRegenerateResult,
    LanguageFeedStatus,
    LanguageFeedStatusResponse,
)

router = APIRouter(prefix="/feeds", tags=["Feeds"])

logger = logging.getLogger(__name__)


MEDIA_TYPES = {
    ".csv": "text/csv",
    ".json": "application/json",
}


def _not_found(detail: str = "Feed file not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def _serve(file_path: str, file_name: str) -> FileResponse:
    if not os.path.isfile(file_path):
        raise _not_found("Feed has not been generated yet")
    extension = os.path.splitext(file_name)[1]
    return FileResponse(
        path=file_path,
        filename=file_name,
        media_type=MEDIA_TYPES.get(extension, "application/octet-stream")
    )


@router.get("", response_model=FeedListResponse)
def list_feeds(manager: FeedManager = Depends(get_feed_manager)):
    """List every active feed with its public URL and file state."""
    items = []
    for feed_type in manager.get_active_feed_types():
        feed = manager.get_feed_instance(feed_type)
        file_path = feed.feed_writer.get_file_path()
        generated = os.path.isfile(file_path)
        items.append(FeedInfo(
            feed_type=feed_type,
            remote_feed_type=feed.get_feed_type(),
            file_name=feed.feed_writer.get_file_name(),
            url=feed.get_feed_data_url(),
            interval_seconds=feed.get_feed_gen_interval(),
            generated=generated,
            size=os.path.getsize(file_path) if generated else None,
            updated_at=(
                datetime.utcfromtimestamp(os.path.getmtime(file_path)).isoformat()
                if generated else None
            )
        ))
    return FeedListResponse(items=items)


@router.post("/regenerate", response_model=FeedRegenerateResponse, status_code=status.HTTP_202_ACCEPTED)
def regenerate_feeds(
    manager: FeedManager = Depends(get_feed_manager),
    language_feed: Optional[LanguageOverrideFeed] = Depends(get_language_override_feed),
    country_feed: Optional[CountryOverrideFeed] = Depends(get_country_override_feed)
):
    """Queue a regeneration of every active feed (and override feeds when configured)."""
    results = manager.run_all_feed_uploads()
    language_jobs = language_feed.regenerate_feed() if language_feed is not None else {}
    country_jobs = country_feed.regenerate_feed() if country_feed is not None else {}
    return FeedRegenerateResponse(
        results={k: FeedRegenerateResult(**v) for k, v in results.items()},
        language_jobs=language_jobs,
        country_jobs=country_jobs
    )


@router.get("/language_override/status", response_model=LanguageFeedStatusResponse)
def get_language_feed_status(
    language_feed: Optional[LanguageOverrideFeed] = Depends(get_language_override_feed)
):
    """Remote feed status of every language override feed."""
    if language_feed is None:
        return LanguageFeedStatusResponse(languages={})
    statuses = language_feed.get_upload_status()
    return LanguageFeedStatusResponse(
        languages={k: LanguageFeedStatus(**v) for k, v in statuses.items()}
    )


@router.get("/{feed_type}/{file_name}")
def get_feed_file(
    feed_type: str,
    file_name: str,
    secret: Optional[str] = Query(None),
    manager: FeedManager = Depends(get_feed_manager),
    language_feed: Optional[LanguageOverrideFeed] = Depends(get_language_override_feed),
    country_feed: Optional[CountryOverrideFeed] = Depends(get_country_override_feed)
):
    """
    Serve a promoted feed file.

    The file name embeds the feed secret, so only the exact public name is
    served. Language override files carry the secret as a query parameter.
    """
    if feed_type == COUNTRY_OVERRIDE and country_feed is not None:
        country_code = country_feed.find_country_by_file_name(file_name)
        if country_code is None:
            raise _not_found()
        return _serve(country_feed.get_feed_writer(country_code).get_file_path(), file_name)

    if feed_type == LANGUAGE_OVERRIDE and language_feed is not None:
        if not secret or not secrets.compare_digest(secret.encode(), language_feed.get_feed_secret().encode()):
            raise _not_found()
        language_code = language_feed.find_language_by_file_name(file_name)
        if language_code is None:
            raise _not_found()
        writer = language_feed.get_feed_writer(language_code)
        return _serve(writer.get_file_path(), file_name)

    try:
        feed = manager.get_feed_instance(feed_type)
    except InvalidFeedTypeError:
        raise _not_found(f"Feed type {feed_type} does not exist.")

    expected = feed.feed_writer.get_file_name()
    if not secrets.compare_digest(file_name.encode(), expected.encode()):
        logger.warning(f"Feed request with wrong file name | feed_type={feed_type}")
        raise _not_found()

    return _serve(feed.feed_writer.get_file_path(), file_name)
