"""
Feed generation core module.
"""

from .errors import FeedError, FileWriteError, FileOpenError, InvalidFeedTypeError
from .writers import CsvFeedFileWriter, JsonFeedFileWriter
from .generator import FeedGenerator
from .base import AbstractFeed
from .manager import FeedManager
from .models import FeedContext
from .localization import LanguageFeedManagement, LanguageOverrideFeed

__all__ = [
    'FeedError',
    'FileWriteError',
    'FileOpenError',
    'InvalidFeedTypeError',
    'CsvFeedFileWriter',
    'JsonFeedFileWriter',
    'FeedGenerator',
    'AbstractFeed',
    'FeedManager',
    'FeedContext',
    'LanguageFeedManagement',
    'LanguageOverrideFeed'
]
