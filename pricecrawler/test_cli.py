"""
Tests for the command line interface.
Run with: pytest pricecrawler/test_cli.py
"""

import json

import pytest

from pricecrawler import cli, coordinator
from pricecrawler.exceptions import CrawlerError
from pricecrawler.models import ClassCrawlResult, CrawlResult, ElementRecord
from pricecrawler.testing import FakeLauncher, FakeListing, fast_config, table_pages, transaction_row

URL = "https://www.propertyguru.com.sg/listing/for-sale-example-123"


@pytest.fixture
def no_pauses(monkeypatch):
    monkeypatch.setattr(cli.CrawlerConfig, "from_env", classmethod(lambda cls, environ=None: fast_config()))


# ============================================================================
# price-history
# ============================================================================

def test_price_history_writes_json(tmp_path, monkeypatch, capsys):
    seen = {}

    async def fake_crawl_single(url, config, adapter=None):
        seen["url"] = url
        seen["headless"] = config.headless
        seen["adapter"] = adapter.name
        return CrawlResult(url=url, transactions=[transaction_row(i) for i in range(7)], total_pages=2)

    monkeypatch.setattr(cli, "crawl_single", fake_crawl_single)
    output = tmp_path / "history.json"

    assert cli.main(["price-history", "-u", URL, "-o", str(output)]) == 0

    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["url"] == URL
    assert data["totalTransactions"] == 7
    assert data["totalPages"] == 2
    assert len(data["transactions"]) == 7

    # Headed by default, as when watching a single crawl
    assert seen == {"url": URL, "headless": False, "adapter": "propertyguru"}
    assert "and 2 more" in capsys.readouterr().out


def test_price_history_headless_flag(tmp_path, monkeypatch):
    seen = {}

    async def fake_crawl_single(url, config, adapter=None):
        seen["headless"] = config.headless
        return CrawlResult(url=url)

    monkeypatch.setattr(cli, "crawl_single", fake_crawl_single)

    cli.main(["price-history", "-u", URL, "-o", str(tmp_path / "h.json"), "--headless", "true"])

    assert seen["headless"] is True


def test_price_history_failure_exits_1(tmp_path, monkeypatch, capsys):
    async def fake_crawl_single(url, config, adapter=None):
        raise CrawlerError("Navigation failed")

    monkeypatch.setattr(cli, "crawl_single", fake_crawl_single)
    output = tmp_path / "history.json"

    assert cli.main(["price-history", "-u", URL, "-o", str(output)]) == 1
    assert not output.exists()
    assert "Navigation failed" in capsys.readouterr().out


def test_keyboard_interrupt_exits_130(monkeypatch):
    def interrupted(args):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "run_price_history", interrupted)

    assert cli.main(["price-history", "-u", URL]) == 130


# ============================================================================
# crawl
# ============================================================================

def test_class_crawl_writes_elements(tmp_path, monkeypatch, capsys):
    long_text = "x" * 150

    async def fake_crawl_by_class(url, class_name, config):
        elements = [ElementRecord(index=i, text=long_text, html="", tag_name="div") for i in range(5)]
        return ClassCrawlResult(url=url, class_name=class_name, elements=elements)

    monkeypatch.setattr(cli, "crawl_by_class", fake_crawl_by_class)
    output = tmp_path / "cards.json"

    assert cli.main(["crawl", "-u", URL, "-c", "listing-card", "-o", str(output)]) == 0

    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["className"] == "listing-card"
    assert data["count"] == 5

    out = capsys.readouterr().out
    assert "x" * 151 not in out
    assert "and 2 more" in out


def test_class_crawl_without_matches_writes_nothing(tmp_path, monkeypatch, capsys):
    async def fake_crawl_by_class(url, class_name, config):
        return ClassCrawlResult(url=url, class_name=class_name, sample_classes=["card", "price"])

    monkeypatch.setattr(cli, "crawl_by_class", fake_crawl_by_class)
    output = tmp_path / "cards.json"

    assert cli.main(["crawl", "-u", URL, "-c", "missing", "-o", str(output)]) == 0
    assert not output.exists()
    assert "card, price" in capsys.readouterr().out


# ============================================================================
# batch
# ============================================================================

def test_batch_saves_artifact(tmp_path, monkeypatch, no_pauses):
    urls = [f"{URL}-{i}" for i in range(3)]
    listings = {
        urls[0]: FakeListing(pages=table_pages(10, 4)),
        urls[1]: FakeListing(table=False),
        urls[2]: FakeListing(pages=table_pages(2)),
    }
    monkeypatch.setattr(coordinator, "PlaywrightLauncher", lambda config: FakeLauncher(listings))

    url_file = tmp_path / "urls.txt"
    url_file.write_text("\n".join(["# listings", urls[0], "", urls[1]]) + "\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    code = cli.main(["batch", urls[2], "-f", str(url_file), "--output-dir", str(out_dir)])

    assert code == 0
    files = list(out_dir.glob("bulk-crawl-*.json"))
    assert len(files) == 1

    data = json.loads(files[0].read_text(encoding="utf-8"))
    assert data["totalUrls"] == 3
    assert [entry["url"] for entry in data["results"]] == [urls[2], urls[0], urls[1]]
    assert [entry["data"]["totalTransactions"] for entry in data["results"]] == [2, 14, 0]
    assert files[0].name == f"bulk-crawl-{data['sessionId']}.json"


def test_batch_with_failed_url_exits_1(tmp_path, monkeypatch, no_pauses):
    listings = {URL: FakeListing(navigation_error="net::ERR_ABORTED")}
    monkeypatch.setattr(coordinator, "PlaywrightLauncher", lambda config: FakeLauncher(listings))

    assert cli.main(["batch", URL, "--output-dir", str(tmp_path)]) == 1
    assert len(list(tmp_path.glob("bulk-crawl-*.json"))) == 1


def test_batch_without_urls():
    assert cli.main(["batch"]) == 2


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "price-history" in capsys.readouterr().out
