"""
Crawl coordinator: fan a list of URLs out over a fixed pool of browsers.

URL ``i`` always runs on browser ``i % pool_size`` (round-robin affinity, not
load balancing), each in its own tab. All URLs are crawled concurrently and
each outcome is captured on its own, so one failing URL never affects the
others. The pool is torn down whatever happens.
"""

import asyncio
import logging
from typing import Any, List, Optional, Sequence

from playwright.async_api import Browser, Playwright, async_playwright

from .adapters import DEFAULT_ADAPTER, PageAdapter
from .config import CrawlerConfig
from .exceptions import BrowserPoolError, CrawlerError
from .models import BatchOutcome, CrawlResult, CrawlStatus
from .page_session import PageSession
from .pagination import PaginationController
from .progress import ProgressEmitter, SessionRegistry, UrlProgress

logger = logging.getLogger(__name__)


# =============================================================================
# Browser pool
# =============================================================================

class PlaywrightLauncher:
    """Launches Chromium instances from one Playwright driver."""

    def __init__(self, config: CrawlerConfig):
        self.config = config
        self._playwright: Optional[Playwright] = None

    async def launch(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=list(self.config.launch_args),
        )

    async def stop(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


class BrowserPool:
    """
    Fixed-size pool of browser instances.

    Usage:
        pool = BrowserPool(size=3, launcher=PlaywrightLauncher(config))
        try:
            await pool.start()
            browser = pool.for_index(url_index)
        finally:
            await pool.close()
    """

    def __init__(self, size: int, launcher: Any):
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self.size = size
        self.launcher = launcher
        self.browsers: List[Browser] = []

    async def start(self) -> None:
        """
        Launch ``size`` browsers.

        Browsers launched before a failure stay in the pool so that
        ``close`` can still tear them down.

        Raises:
            BrowserPoolError: If a browser could not be launched
        """
        logger.info(f"Initializing {self.size} browser instance(s)...")
        for i in range(self.size):
            try:
                self.browsers.append(await self.launcher.launch())
            except Exception as e:
                raise BrowserPoolError(f"Failed to launch browser {i + 1}/{self.size}: {e}") from e

    def for_index(self, url_index: int) -> Browser:
        if not self.browsers:
            raise BrowserPoolError("Browser not available")
        return self.browsers[url_index % len(self.browsers)]

    async def close(self) -> None:
        """Close every launched browser, then the driver. Never raises."""
        browsers, self.browsers = self.browsers, []
        results = await asyncio.gather(
            *(browser.close() for browser in browsers),
            return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                logger.warning(f"Error closing browser: {result}")

        stop = getattr(self.launcher, "stop", None)
        if stop is not None:
            try:
                await stop()
            except Exception as e:
                logger.warning(f"Error stopping browser driver: {e}")

        if browsers:
            logger.info(f"Closed {len(browsers)} browser instance(s)")


# =============================================================================
# Coordinator
# =============================================================================

class CrawlCoordinator:
    """
    Run pagination controllers for many URLs over a shared browser pool.

    Usage:
        registry = SessionRegistry()
        coordinator = CrawlCoordinator(config, registry=registry)
        with registry.session(session_id, sink):
            outcomes = await coordinator.crawl_many(urls, session_id)
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        registry: Optional[SessionRegistry] = None,
        adapter: Optional[PageAdapter] = None,
        launcher: Any = None
    ):
        """
        Initialize the coordinator.

        Args:
            config: Crawl settings (pool size, timeouts, headless)
            registry: Session registry progress is reported through; without
                one, progress is dropped
            adapter: Table layout (defaults to the PropertyGuru adapter)
            launcher: Object with async ``launch()`` / ``stop()``; defaults to
                a Playwright Chromium launcher
        """
        self.config = config or CrawlerConfig()
        self.registry = registry
        self.emitter = ProgressEmitter(registry) if registry is not None else None
        self.adapter = adapter or DEFAULT_ADAPTER
        self.launcher = launcher or PlaywrightLauncher(self.config)
        self.pool: Optional[BrowserPool] = None

    def _progress(self, session_id: Optional[str], url_index: int, total_urls: int, url: str) -> UrlProgress:
        if self.emitter is None:
            return UrlProgress.silent(url)
        return self.emitter.for_url(session_id, url_index, total_urls, url)

    async def crawl_url(
        self,
        url: str,
        session_id: Optional[str],
        url_index: int,
        total_urls: int
    ) -> CrawlResult:
        """
        Crawl one URL on its round-robin browser, in a fresh tab.

        Every failure, including a blank URL or a tab that cannot be
        opened, is reported and turned into an error result.
        """
        if self.pool is None:
            raise BrowserPoolError("Browser pool not started")

        progress = self._progress(session_id, url_index, total_urls, url)
        session: Optional[PageSession] = None

        try:
            if not url:
                raise CrawlerError("URL is empty")
            browser = self.pool.for_index(url_index)
            session = await PageSession.open(browser, self.config)
            controller = PaginationController(session, self.adapter, self.config, progress)
            outcome = await controller.run(url)
            return CrawlResult(
                url=url,
                transactions=outcome.transactions,
                total_pages=outcome.total_pages,
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Crawl failed for {url}: {message}")
            progress.emit(CrawlStatus.ERROR, message, error=message)
            return CrawlResult.failed(url, message)
        finally:
            if session is not None:
                await session.close()

    async def crawl_many(
        self,
        urls: Sequence[str],
        session_id: Optional[str] = None
    ) -> List[BatchOutcome]:
        """
        Crawl every URL concurrently.

        Args:
            urls: Target URLs; outcomes come back in the same order
            session_id: Registered session that receives progress events

        Returns:
            One BatchOutcome per URL

        Raises:
            BrowserPoolError: If the browser pool could not be provisioned
        """
        urls = list(urls)
        if not urls:
            return []

        pool_size = min(self.config.concurrency, len(urls))
        self.pool = BrowserPool(pool_size, self.launcher)

        try:
            await self.pool.start()
            results = await asyncio.gather(
                *(
                    self.crawl_url(url.strip(), session_id, index, len(urls))
                    for index, url in enumerate(urls)
                ),
                return_exceptions=True
            )
            return self._aggregate(urls, results)
        finally:
            await self.pool.close()
            self.pool = None

    @staticmethod
    def _aggregate(urls: Sequence[str], results: Sequence[Any]) -> List[BatchOutcome]:
        outcomes = []
        for url, result in zip(urls, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    # Cancellation and interpreter exits are not per-URL failures.
                    raise result
                outcomes.append(BatchOutcome(url=url, success=False, error=str(result) or type(result).__name__))
            elif not result.success:
                outcomes.append(BatchOutcome(url=url, success=False, data=result, error=result.error))
            else:
                outcomes.append(BatchOutcome(url=url, success=True, data=result))
        return outcomes


async def crawl_single(
    url: str,
    config: Optional[CrawlerConfig] = None,
    registry: Optional[SessionRegistry] = None,
    session_id: Optional[str] = None,
    adapter: Optional[PageAdapter] = None,
    launcher: Any = None
) -> CrawlResult:
    """
    Crawl one URL with a one-browser pool.

    Raises:
        CrawlerError: If the URL could not be crawled
    """
    config = config or CrawlerConfig()
    coordinator = CrawlCoordinator(config, registry=registry, adapter=adapter, launcher=launcher)
    outcome = (await coordinator.crawl_many([url], session_id))[0]
    if not outcome.success:
        raise CrawlerError(outcome.error or "crawl failed")
    return outcome.data
