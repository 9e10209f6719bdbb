"""
In-memory stand-ins for Playwright browsers, for tests.

A FakeListing describes what one URL serves: the rows of every page of its
price history table and how the page misbehaves. FakeLauncher hands out
FakeBrowsers whose FakePages answer the crawler's in-page scripts from that
description instead of running JavaScript.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .adapters import (
    CLEAR_FILTERS_JS,
    DEFAULT_ADAPTER,
    EXPAND_ROWS_JS,
    EXTRACT_ROWS_JS,
    NEXT_PAGE_JS,
    PageAdapter,
)
from .class_extractor import EXTRACT_ELEMENTS_JS, SAMPLE_CLASSES_JS
from .config import CrawlerConfig

SCROLL_PREFIX = "() => window.scrollTo"


def fast_config(**overrides: Any) -> CrawlerConfig:
    """CrawlerConfig without fixed pauses."""
    values: Dict[str, Any] = dict(scroll_pause=0, filter_pause=0, expand_pause=0, settle_pause=0)
    values.update(overrides)
    return CrawlerConfig(**values)


def transaction_row(n: int, **extra: str) -> Dict[str, str]:
    """Raw cell values for one collapsed row plus its detail panel."""
    row = {
        "date": f"Jan {2020 + n % 5}",
        "bedrooms": "3 Bedrooms",
        "size": "1,200 sqft",
        "price": f"S$ {1000000 + n * 1000:,}",
        "pricePerSqft": "S$ 1,000 psf",
        "floorLevel": "Mid",
        "buildStatus": "Completed",
        "lease": "99-year",
        "address": f"#{n % 30 + 2:02d}-12, Example Rd",
    }
    row.update(extra)
    return row


def table_pages(*sizes: int) -> List[List[Dict[str, str]]]:
    """Pages with the given row counts, numbered consecutively."""
    pages, n = [], 0
    for size in sizes:
        pages.append([transaction_row(n + i) for i in range(size)])
        n += size
    return pages


@dataclass
class FakeListing:
    """What one URL serves."""
    pages: List[List[Dict[str, Any]]] = field(default_factory=list)
    table: bool = True
    filters: int = 0
    next_control: bool = True
    navigation_error: Optional[str] = None
    navigation_timeout: bool = False
    click_fails_on_page: Optional[int] = None
    extract_error: Optional[str] = None
    elements: List[Dict[str, Any]] = field(default_factory=list)
    sample_classes: List[str] = field(default_factory=list)

    # Filled in by the fake page
    filters_cleared: bool = False


class FakePage:
    def __init__(self, browser: "FakeBrowser", adapter: PageAdapter):
        self.browser = browser
        self.adapter = adapter
        self.url: Optional[str] = None
        self.listing = FakeListing(table=False)
        self.page_index = 0
        self.closed = False
        self.headers: Dict[str, str] = {}
        self.default_timeout: Optional[int] = None
        self.scripts: List[str] = []

    # -- Setup ----------------------------------------------------------------

    def set_default_timeout(self, timeout: int) -> None:
        self.default_timeout = timeout

    async def set_extra_http_headers(self, headers: Dict[str, str]) -> None:
        self.headers = dict(headers)

    async def close(self) -> None:
        self.closed = True

    # -- Navigation -----------------------------------------------------------

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[int] = None) -> None:
        self.url = url
        self.listing = self.browser.launcher.listings.get(url, FakeListing(table=False))
        if self.listing.navigation_timeout:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded.")
        if self.listing.navigation_error:
            raise PlaywrightError(self.listing.navigation_error)

    async def wait_for_load_state(self, state: str = "load", timeout: Optional[int] = None) -> None:
        return None

    async def wait_for_selector(self, selector: str, timeout: Optional[int] = None, state: str = "visible") -> None:
        if selector == self.adapter.table_root_selector and self.listing.table:
            return None
        if selector == self.adapter.row_selector and self.listing.table and self._current_rows():
            return None
        if selector.startswith(".") and self.listing.elements:
            return None
        raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def click(self, selector: str, timeout: Optional[int] = None) -> None:
        if self.listing.click_fails_on_page == self.page_index + 1:
            raise PlaywrightTimeout(f"Timeout {timeout}ms exceeded clicking {selector}")
        self.page_index += 1

    # -- Scripts --------------------------------------------------------------

    def _current_rows(self) -> List[Dict[str, Any]]:
        if self.page_index < len(self.listing.pages):
            return self.listing.pages[self.page_index]
        return []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.scripts.append(script)

        if script.startswith(SCROLL_PREFIX):
            return None
        if script == CLEAR_FILTERS_JS:
            self.listing.filters_cleared = True
            return self.listing.filters
        if script == EXPAND_ROWS_JS:
            return len(self._current_rows())
        if script == EXTRACT_ROWS_JS:
            if self.listing.extract_error:
                raise PlaywrightError(self.listing.extract_error)
            return copy.deepcopy(self._current_rows())
        if script == NEXT_PAGE_JS:
            if not self.listing.next_control:
                return {"exists": False, "enabled": False}
            return {"exists": True, "enabled": self.page_index < len(self.listing.pages) - 1}
        if script == EXTRACT_ELEMENTS_JS:
            return copy.deepcopy(self.listing.elements)
        if script == SAMPLE_CLASSES_JS:
            return self.listing.sample_classes[:arg]
        raise AssertionError(f"Unexpected script: {script[:60]!r}")


class FakeBrowser:
    def __init__(self, launcher: "FakeLauncher", number: int):
        self.launcher = launcher
        self.number = number
        self.pages: List[FakePage] = []
        self.closed = False

    async def new_page(self) -> FakePage:
        if self.number == self.launcher.fail_new_page:
            raise PlaywrightError("Target page, context or browser has been closed")
        page = FakePage(self, self.launcher.adapter)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True

    @property
    def urls(self) -> List[Optional[str]]:
        return [page.url for page in self.pages]


class FakeLauncher:
    """
    Launcher returning FakeBrowsers.

    Args:
        listings: URL -> FakeListing
        fail_on_launch: 1-based launch number that raises
        fail_new_page: 1-based browser number whose new_page raises
    """

    def __init__(
        self,
        listings: Optional[Dict[str, FakeListing]] = None,
        fail_on_launch: Optional[int] = None,
        adapter: PageAdapter = DEFAULT_ADAPTER,
        fail_new_page: Optional[int] = None
    ):
        self.listings = listings or {}
        self.fail_on_launch = fail_on_launch
        self.fail_new_page = fail_new_page
        self.adapter = adapter
        self.browsers: List[FakeBrowser] = []
        self.stopped = False

    async def launch(self) -> FakeBrowser:
        number = len(self.browsers) + 1
        if number == self.fail_on_launch:
            raise RuntimeError("browser executable not found")
        browser = FakeBrowser(self, number)
        self.browsers.append(browser)
        return browser

    async def stop(self) -> None:
        self.stopped = True

    @property
    def pages(self) -> List[FakePage]:
        return [page for browser in self.browsers for page in browser.pages]
