"""
Feed API schemas.
"""

from pydantic import BaseModel
from typing import Optional, List, Dict, Any, Literal


class FeedInfo(BaseModel):
    """Public description of one feed type."""
    feed_type: str
    remote_feed_type: str
    file_name: str
    url: str
    interval_seconds: int
    generated: bool = False
    size: Optional[int] = None
    updated_at: Optional[str] = None


class FeedListResponse(BaseModel):
    """Response for list feeds."""
    items: List[FeedInfo]


class FeedRegenerateResult(BaseModel):
    """Outcome of queueing one feed regeneration."""
    status: Literal["queued", "skipped", "failed"]
    job_id: Optional[str] = None
    error: Optional[str] = None


class FeedRegenerateResponse(BaseModel):
    """Response for regenerate feeds."""
    results: Dict[str, FeedRegenerateResult]
    language_jobs: Dict[str, Optional[str]] = {}
    country_jobs: Dict[str, Optional[str]] = {}


class LanguageFeedStatus(BaseModel):
    """Upload status of one language override feed."""
    feed_id: Optional[str] = None
    status: Literal["active", "error", "not_created"]
    error: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class LanguageFeedStatusResponse(BaseModel):
    """Response for language feed status."""
    languages: Dict[str, LanguageFeedStatus]


class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool = True
