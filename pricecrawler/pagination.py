"""
Pagination controller for state-based (client-side) pagination.

The price history table pages without changing the URL, so the page count
and the last page can only be inferred from what the DOM offers: a table
root, row elements, and a "next" control that is present and not disabled.
The controller drives one PageSession through

    ARM -> PROBE -> CLEAR_FILTERS -> CYCLE -> DONE
                                      |
    (navigation / evaluation error) -> FAILED

Every wait is bounded. A missing table, a page without rows, a missing or
disabled "next" control and a failed click all end the crawl normally with
whatever was accumulated. Only navigation failures and errors raised while
evaluating scripts in the page escape from ``run``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .adapters import PageAdapter
from .config import CrawlerConfig
from .models import CrawlStatus, TransactionRecord
from .page_session import PageSession
from .progress import UrlProgress

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    ARM = "arm"
    PROBE = "probe"
    CLEAR_FILTERS = "clear_filters"
    CYCLE = "cycle"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PaginationOutcome:
    """
    What one controller run produced.

    ``total_pages`` counts pages whose rows were extracted, never less than 1.
    """
    transactions: List[TransactionRecord] = field(default_factory=list)
    total_pages: int = 1
    table_found: bool = True

    @property
    def total_transactions(self) -> int:
        return len(self.transactions)


class PaginationController:
    """
    Drive one page session through load, extract, detect-next and advance.

    Usage:
        controller = PaginationController(session, adapter, config, progress)
        outcome = await controller.run(url)
    """

    def __init__(
        self,
        session: PageSession,
        adapter: PageAdapter,
        config: CrawlerConfig,
        progress: Optional[UrlProgress] = None
    ):
        self.session = session
        self.adapter = adapter
        self.config = config
        self.progress = progress
        self.state = ControllerState.ARM

        self.transactions: List[TransactionRecord] = []
        self.current_page = 1
        self.pages_scraped = 0

    def _report(self, status: CrawlStatus, message: str, error: Optional[str] = None) -> None:
        if self.progress is not None:
            self.progress.emit(status, message, error)

    def _transition(self, state: ControllerState) -> None:
        logger.debug(f"{self.session.url}: {self.state.value} -> {state.value}")
        self.state = state

    async def run(self, url: str) -> PaginationOutcome:
        """
        Crawl every page of the table at ``url``.

        Raises:
            NavigationError: If the page could not be loaded
            playwright Error: If an in-page script failed
        """
        try:
            await self._arm(url)

            self._transition(ControllerState.PROBE)
            if not await self._probe_table():
                self._transition(ControllerState.DONE)
                logger.info(f"Price history table not found on {url}")
                self._report(CrawlStatus.COMPLETED, "Price history table not found (0 transactions)")
                return PaginationOutcome(transactions=[], total_pages=1, table_found=False)

            self._transition(ControllerState.CLEAR_FILTERS)
            await self._clear_filters()

            self._transition(ControllerState.CYCLE)
            self._report(CrawlStatus.SCRAPING, "Extracting data...")
            await self._cycle()
        except Exception:
            self._transition(ControllerState.FAILED)
            raise

        self._transition(ControllerState.DONE)
        total = len(self.transactions)
        logger.info(f"Scraped {total} transactions over {self.pages_scraped} page(s) from {url}")
        self._report(CrawlStatus.COMPLETED, f"Completed: {total} transactions")

        return PaginationOutcome(
            transactions=self.transactions,
            total_pages=max(1, self.pages_scraped),
        )

    async def _arm(self, url: str) -> None:
        self._report(CrawlStatus.STARTING, "Navigating to page...")
        await self.session.navigate(url, self.config.timeout_ms)

        self._report(CrawlStatus.LOADING, "Waiting for content...")
        # Lazy-mounted widgets only render once scrolled into view.
        await self.session.scroll_to_bottom()
        await self.session.pause(self.config.scroll_pause)

    async def _probe_table(self) -> bool:
        return await self.session.wait_for(self.adapter.table_root_selector, self.config.table_wait_ms)

    async def _clear_filters(self) -> None:
        try:
            removed = await self.adapter.clear_filters(self.session)
        except Exception as e:
            logger.warning(f"Could not clear filters on {self.session.url}: {e}")
            return

        if removed:
            logger.info(f"Removed {removed} filter(s), waiting for table to update")
            await self.session.pause(self.config.filter_pause)

    async def _cycle(self) -> None:
        has_next_page = True

        while has_next_page:
            if not await self.session.wait_for(self.adapter.row_selector, self.config.row_wait_ms):
                logger.info(f"No rows on page {self.current_page}, stopping")
                break

            expanded = await self.adapter.expand_rows(self.session)
            if expanded:
                await self.session.pause(self.config.expand_pause)

            page_rows = await self.adapter.extract_rows(self.session)
            self.transactions.extend(page_rows)
            self.pages_scraped += 1

            logger.info(f"Found {len(page_rows)} transactions on page {self.current_page}")
            self._report(
                CrawlStatus.SCRAPING,
                f"Scraped page {self.current_page} ({len(page_rows)} records)"
            )

            has_next_page = await self._advance()

    async def _advance(self) -> bool:
        """Move to the next page. False when there is none or it can't be reached."""
        next_state = await self.adapter.next_page_state(self.session)
        if not next_state.exists:
            logger.info("No pagination control, reached last page")
            return False
        if not next_state.enabled:
            logger.info("Next button disabled, reached last page")
            return False

        try:
            await self.adapter.go_to_next_page(self.session)
            await self.session.pause(self.config.settle_pause)
            await self.session.wait_for_network_idle(self.config.idle_wait_ms)
        except Exception as e:
            logger.warning(f"Error moving past page {self.current_page}: {e}")
            return False

        self.current_page += 1
        return True
