"""
Exceptions raised by the feed pipeline.
"""


class FeedError(Exception):
    """Base exception for feed generation errors."""
    pass


class FileWriteError(FeedError):
    """Raised when a feed file cannot be created, written or promoted."""
    pass


class FileOpenError(FileWriteError):
    """Raised when a feed file cannot be opened."""
    pass


class InvalidFeedTypeError(FeedError, ValueError):
    """Raised when a feed type key is not registered."""

    def __init__(self, feed_type: str):
        self.feed_type = feed_type
        super().__init__(f"Feed type {feed_type} does not exist.")


class UnsupportedLanguageError(FeedError, ValueError):
    """Raised when a language has no language override value."""

    def __init__(self, language_code: str):
        self.language_code = language_code
        super().__init__(f"Language feed not supported for override value: {language_code}")
