"""
Price history crawler.

Components:
- PaginationController: walks every page of a client-side paginated table
- CrawlCoordinator: crawls many URLs over a fixed pool of browsers
- SessionRegistry / ProgressEmitter: per-session progress reporting
- PageAdapter: selectors and page operations for one table layout
"""

from .adapters import ADAPTERS, DEFAULT_ADAPTER, PROPERTYGURU_ADAPTER, PageAdapter, get_adapter
from .class_extractor import crawl_by_class, extract_by_class
from .config import CrawlerConfig
from .coordinator import BrowserPool, CrawlCoordinator, PlaywrightLauncher, crawl_single
from .exceptions import BrowserPoolError, CrawlerError, ExtractionError, NavigationError
from .extractor import FieldSpec, derive_floor, parse_row, parse_rows
from .models import (
    BatchOutcome,
    ClassCrawlResult,
    CrawlResult,
    CrawlStatus,
    ElementRecord,
    ProgressEvent,
)
from .page_session import PageSession
from .pagination import PaginationController, PaginationOutcome
from .progress import (
    CallbackSink,
    CollectingSink,
    ConsoleSink,
    LoggingSink,
    ProgressEmitter,
    ProgressSink,
    QueueSink,
    SessionRegistry,
)
from .storage import save_batch_results

__version__ = "1.0.0"

__all__ = [
    # Crawling
    'PaginationController',
    'PaginationOutcome',
    'CrawlCoordinator',
    'BrowserPool',
    'PlaywrightLauncher',
    'PageSession',
    'crawl_single',
    'crawl_by_class',
    'extract_by_class',
    # Adapters and extraction
    'PageAdapter',
    'PROPERTYGURU_ADAPTER',
    'DEFAULT_ADAPTER',
    'ADAPTERS',
    'get_adapter',
    'FieldSpec',
    'derive_floor',
    'parse_row',
    'parse_rows',
    # Progress
    'SessionRegistry',
    'ProgressEmitter',
    'ProgressSink',
    'QueueSink',
    'CallbackSink',
    'CollectingSink',
    'LoggingSink',
    'ConsoleSink',
    # Models
    'CrawlResult',
    'BatchOutcome',
    'ProgressEvent',
    'CrawlStatus',
    'ElementRecord',
    'ClassCrawlResult',
    'CrawlerConfig',
    'save_batch_results',
    # Errors
    'CrawlerError',
    'NavigationError',
    'BrowserPoolError',
    'ExtractionError',
]
