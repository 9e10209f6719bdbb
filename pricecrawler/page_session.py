"""
Page session: one browser tab bound to one target URL.

Wraps the handful of Playwright primitives the pagination controller needs.
Waits that are expected to time out on a healthy page (a missing table, the
network never going idle after a client-side page change) report False
instead of raising, so callers can treat them as ordinary control flow.
"""

import asyncio
import logging
from typing import Any, Optional

from playwright.async_api import Browser, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .config import CrawlerConfig
from .exceptions import NavigationError

logger = logging.getLogger(__name__)


class PageSession:
    """
    A single tab, exclusively owned by one crawl of one URL.

    Usage:
        async with await PageSession.open(browser, config) as session:
            await session.navigate(url)
            found = await session.wait_for(".price-history-table-root", 10000)
    """

    def __init__(self, page: Page, config: CrawlerConfig):
        self.page = page
        self.config = config
        self.url: Optional[str] = None
        self._closed = False

    @classmethod
    async def open(cls, browser: Browser, config: CrawlerConfig) -> "PageSession":
        """Open a new tab on ``browser`` with the crawler's request headers."""
        page = await browser.new_page()
        session = cls(page, config)
        try:
            page.set_default_timeout(config.timeout_ms)
            await page.set_extra_http_headers({
                'User-Agent': config.user_agent,
                'Accept-Language': 'en-US,en;q=0.9',
            })
        except Exception:
            await session.close()
            raise
        return session

    async def __aenter__(self) -> "PageSession":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def navigate(self, url: str, timeout_ms: Optional[int] = None) -> None:
        """
        Load ``url`` and wait for the network to go idle.

        Raises:
            NavigationError: If the page could not be loaded in time
        """
        timeout = timeout_ms or self.config.timeout_ms
        self.url = url
        logger.info(f"Navigating to {url}")
        try:
            await self.page.goto(url, wait_until="networkidle", timeout=timeout)
        except PlaywrightTimeout as e:
            raise NavigationError(url, f"timed out after {timeout}ms") from e
        except PlaywrightError as e:
            raise NavigationError(url, str(e)) from e

    async def wait_for(self, selector: str, timeout_ms: int) -> bool:
        """Wait for ``selector`` to be attached. False on timeout."""
        try:
            await self.page.wait_for_selector(selector, timeout=timeout_ms, state="attached")
            return True
        except PlaywrightTimeout:
            logger.debug(f"Selector {selector} not found within {timeout_ms}ms")
            return False

    async def wait_for_network_idle(self, timeout_ms: int) -> bool:
        """Wait for network idle. False on timeout; the signal is a heuristic."""
        try:
            await self.page.wait_for_load_state("networkidle", timeout=timeout_ms)
            return True
        except PlaywrightTimeout:
            logger.debug(f"Network idle not reached within {timeout_ms}ms, continuing")
            return False

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run ``script`` (a JS function expression) in the page context."""
        if arg is None:
            return await self.page.evaluate(script)
        return await self.page.evaluate(script, arg)

    async def click(self, selector: str, timeout_ms: Optional[int] = None) -> None:
        await self.page.click(selector, timeout=timeout_ms or self.config.click_timeout_ms)

    async def scroll_to_bottom(self) -> None:
        await self.page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")

    async def pause(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.page.close()
        except PlaywrightError as e:
            # The browser may already be gone during pool teardown.
            logger.debug(f"Closing tab for {self.url} failed: {e}")
