"""
Main API router for v1.
"""

from fastapi import APIRouter
from feedsync.api import feeds

router = APIRouter()

router.include_router(feeds.router)  # Feeds router prefix: /feeds
