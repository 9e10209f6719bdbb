"""
Tests for the browser pool and the batch coordinator.
Run with: pytest pricecrawler/test_coordinator.py
"""

import asyncio

import pytest

from pricecrawler.coordinator import BrowserPool, CrawlCoordinator, crawl_single
from pricecrawler.exceptions import BrowserPoolError, CrawlerError
from pricecrawler.models import CrawlStatus
from pricecrawler.progress import CollectingSink, SessionRegistry
from pricecrawler.testing import FakeLauncher, FakeListing, fast_config, table_pages


def listing_urls(count):
    return [f"https://www.propertyguru.com.sg/listing/{i}" for i in range(count)]


def crawl(urls, listings, concurrency=3, session_id="batch-1", **launcher_kwargs):
    """Run crawl_many; returns (outcomes, launcher, events)."""
    registry = SessionRegistry()
    sink = CollectingSink()
    launcher = FakeLauncher(listings, **launcher_kwargs)
    coordinator = CrawlCoordinator(
        fast_config(concurrency=concurrency),
        registry=registry,
        launcher=launcher,
    )
    with registry.session(session_id, sink):
        outcomes = asyncio.run(coordinator.crawl_many(urls, session_id))
    return outcomes, launcher, sink.events


# ============================================================================
# Pool
# ============================================================================

def test_pool_round_robin():
    async def run():
        pool = BrowserPool(3, FakeLauncher())
        await pool.start()
        picked = [pool.for_index(i).number for i in range(7)]
        await pool.close()
        return picked

    assert asyncio.run(run()) == [1, 2, 3, 1, 2, 3, 1]


def test_pool_size_must_be_positive():
    with pytest.raises(ValueError):
        BrowserPool(0, FakeLauncher())


def test_pool_launch_failure_closes_launched_browsers():
    launcher = FakeLauncher(fail_on_launch=3)

    async def run():
        pool = BrowserPool(3, launcher)
        try:
            await pool.start()
        finally:
            await pool.close()

    with pytest.raises(BrowserPoolError):
        asyncio.run(run())

    assert len(launcher.browsers) == 2
    assert all(browser.closed for browser in launcher.browsers)
    assert launcher.stopped


# ============================================================================
# Batch crawl
# ============================================================================

def test_at_most_concurrency_browsers_and_ordered_outcomes():
    urls = listing_urls(7)
    listings = {url: FakeListing(pages=table_pages(i + 1)) for i, url in enumerate(urls)}

    outcomes, launcher, _ = crawl(urls, listings, concurrency=3)

    assert len(launcher.browsers) == 3
    assert [outcome.url for outcome in outcomes] == urls
    assert [outcome.data.total_transactions for outcome in outcomes] == [1, 2, 3, 4, 5, 6, 7]
    assert all(outcome.success for outcome in outcomes)


def test_urls_are_assigned_round_robin():
    urls = listing_urls(5)
    listings = {url: FakeListing(pages=table_pages(1)) for url in urls}

    _, launcher, _ = crawl(urls, listings, concurrency=2)

    assert set(launcher.browsers[0].urls) == {urls[0], urls[2], urls[4]}
    assert set(launcher.browsers[1].urls) == {urls[1], urls[3]}


def test_pool_never_larger_than_batch():
    urls = listing_urls(2)
    listings = {url: FakeListing(pages=table_pages(1)) for url in urls}

    _, launcher, _ = crawl(urls, listings, concurrency=5)

    assert len(launcher.browsers) == 2


def test_failing_url_is_isolated():
    urls = listing_urls(3)
    listings = {
        urls[0]: FakeListing(pages=table_pages(10, 10, 4)),
        urls[1]: FakeListing(navigation_error="net::ERR_CONNECTION_REFUSED"),
        urls[2]: FakeListing(pages=table_pages(5)),
    }

    outcomes, launcher, events = crawl(urls, listings)

    assert outcomes[0].success
    assert outcomes[0].data.total_transactions == 24
    assert outcomes[0].data.total_pages == 3

    assert not outcomes[1].success
    assert "net::ERR_CONNECTION_REFUSED" in outcomes[1].error
    assert outcomes[1].data.transactions == []

    assert outcomes[2].success
    assert outcomes[2].data.total_transactions == 5

    errors = [event for event in events if event.status == CrawlStatus.ERROR]
    assert len(errors) == 1
    assert errors[0].url_index == 1
    assert errors[0].url == urls[1]

    # Every tab and browser is closed afterwards
    assert all(page.closed for page in launcher.pages)
    assert all(browser.closed for browser in launcher.browsers)
    assert launcher.stopped


def test_extraction_error_is_isolated():
    urls = listing_urls(2)
    listings = {
        urls[0]: FakeListing(pages=table_pages(3), extract_error="Execution context was destroyed"),
        urls[1]: FakeListing(pages=table_pages(3)),
    }

    outcomes, _, _ = crawl(urls, listings)

    assert not outcomes[0].success
    assert "Execution context was destroyed" in outcomes[0].error
    assert outcomes[1].success


def test_blank_url_fails_in_its_slot():
    urls = listing_urls(2)
    listings = {url: FakeListing(pages=table_pages(2)) for url in urls}
    batch = [urls[0], "  ", urls[1]]

    outcomes, launcher, events = crawl(batch, listings)

    assert len(outcomes) == 3
    assert [outcome.success for outcome in outcomes] == [True, False, True]
    assert outcomes[1].url == "  "
    assert outcomes[1].error == "URL is empty"
    assert outcomes[1].data.transactions == []

    errors = [event for event in events if event.status == CrawlStatus.ERROR]
    assert [event.url_index for event in errors] == [1]
    assert all(event.total_urls == 3 for event in events)

    # No tab is opened for the blank URL
    assert len(launcher.pages) == 2


def test_tab_open_failure_is_reported():
    urls = listing_urls(2)
    listings = {url: FakeListing(pages=table_pages(3)) for url in urls}

    outcomes, launcher, events = crawl(urls, listings, concurrency=2, fail_new_page=2)

    assert outcomes[0].success
    assert not outcomes[1].success
    assert "has been closed" in outcomes[1].error

    errors = [event for event in events if event.status == CrawlStatus.ERROR]
    assert len(errors) == 1
    assert errors[0].url_index == 1
    assert errors[0].url == urls[1]

    assert launcher.browsers[1].pages == []
    assert all(browser.closed for browser in launcher.browsers)
    assert launcher.stopped


def test_missing_table_counts_as_success():
    urls = listing_urls(1)
    outcomes, _, _ = crawl(urls, {urls[0]: FakeListing(table=False)})

    result = outcomes[0].data
    assert outcomes[0].success
    assert result.transactions == []
    assert result.total_pages == 1


def test_launch_failure_fails_batch_and_closes_browsers():
    urls = listing_urls(3)
    listings = {url: FakeListing(pages=table_pages(1)) for url in urls}
    launcher = FakeLauncher(listings, fail_on_launch=2)
    coordinator = CrawlCoordinator(fast_config(concurrency=3), launcher=launcher)

    with pytest.raises(BrowserPoolError):
        asyncio.run(coordinator.crawl_many(urls))

    assert len(launcher.browsers) == 1
    assert launcher.browsers[0].closed


def test_empty_batch():
    outcomes, launcher, _ = crawl([], {})

    assert outcomes == []
    assert launcher.browsers == []


def test_progress_events_follow_each_url():
    urls = listing_urls(2)
    listings = {url: FakeListing(pages=table_pages(2)) for url in urls}

    _, _, events = crawl(urls, listings)

    for index, url in enumerate(urls):
        statuses = [event.status for event in events if event.url_index == index]
        assert statuses[0] == CrawlStatus.STARTING
        assert statuses[-1] == CrawlStatus.COMPLETED
        assert all(event.total_urls == 2 for event in events)
        assert all(event.url == url for event in events if event.url_index == index)


def test_crawl_single():
    url = listing_urls(1)[0]
    launcher = FakeLauncher({url: FakeListing(pages=table_pages(10, 3))})

    result = asyncio.run(crawl_single(url, fast_config(), launcher=launcher))

    assert result.total_transactions == 13
    assert result.total_pages == 2
    assert result.to_dict()["totalPages"] == 2


def test_crawl_single_raises_on_failure():
    url = listing_urls(1)[0]
    launcher = FakeLauncher({url: FakeListing(navigation_error="net::ERR_ABORTED")})

    with pytest.raises(CrawlerError, match="ERR_ABORTED"):
        asyncio.run(crawl_single(url, fast_config(), launcher=launcher))
