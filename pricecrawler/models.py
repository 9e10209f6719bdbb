"""
Data models for crawled price history.

Serialised keys use camelCase because the JSON artifacts and the progress
stream are consumed by a browser UI.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# A transaction is a sparse mapping: a key is present only when its cell was.
TransactionRecord = Dict[str, str]


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with a trailing Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CrawlStatus(str, Enum):
    """Per-URL progress states reported on the progress stream."""
    STARTING = "starting"
    LOADING = "loading"
    SCRAPING = "scraping"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class ProgressEvent:
    """One status update for one URL of a crawl session."""
    session_id: str
    url_index: int
    total_urls: int
    status: CrawlStatus
    url: str
    message: str
    error: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sessionId": self.session_id,
            "urlIndex": self.url_index,
            "totalUrls": self.total_urls,
            "status": CrawlStatus(self.status).value,
            "url": self.url,
            "message": self.message,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class CrawlResult:
    """
    Outcome of crawling one URL.

    A result either carries the accumulated transactions or, when the URL
    could not be scraped at all, an error message and no transactions.
    """
    url: str
    transactions: List[TransactionRecord] = field(default_factory=list)
    total_pages: int = 1
    scraped_at: str = field(default_factory=utc_timestamp)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def total_transactions(self) -> int:
        return len(self.transactions)

    @classmethod
    def failed(cls, url: str, error: str) -> "CrawlResult":
        return cls(url=url, transactions=[], error=error)

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"url": self.url, "error": self.error, "transactions": []}
        return {
            "url": self.url,
            "scrapedAt": self.scraped_at,
            "totalTransactions": self.total_transactions,
            "totalPages": self.total_pages,
            "transactions": list(self.transactions),
        }


@dataclass
class BatchOutcome:
    """Per-URL entry of a batch result, in input order."""
    url: str
    success: bool
    data: Optional[CrawlResult] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "success": self.success,
            "data": self.data.to_dict() if self.data is not None else None,
            "error": self.error,
        }


@dataclass
class ElementRecord:
    """An element matched by class name."""
    index: int
    text: str
    html: str
    tag_name: str
    attributes: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "text": self.text,
            "html": self.html,
            "tagName": self.tag_name,
            "attributes": dict(self.attributes),
        }


@dataclass
class ClassCrawlResult:
    """All elements carrying a given class on one page."""
    url: str
    class_name: str
    elements: List[ElementRecord] = field(default_factory=list)
    timestamp: str = field(default_factory=utc_timestamp)
    sample_classes: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.elements)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "className": self.class_name,
            "timestamp": self.timestamp,
            "count": self.count,
            "elements": [element.to_dict() for element in self.elements],
        }
