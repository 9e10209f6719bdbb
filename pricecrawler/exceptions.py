"""
Exception types raised by the price history crawler.

Only failures that should abort a single URL (or a whole batch) are modelled
here. Expected end-of-pagination conditions are not exceptions.
"""


class CrawlerError(Exception):
    """Base class for crawler failures."""


class NavigationError(CrawlerError):
    """The target URL could not be loaded."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class BrowserPoolError(CrawlerError):
    """Browser instances could not be provisioned."""


class ExtractionError(CrawlerError):
    """In-page extraction returned something other than row data."""
