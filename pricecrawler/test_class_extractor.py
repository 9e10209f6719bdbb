"""
Tests for class-based element extraction.
Run with: pytest pricecrawler/test_class_extractor.py
"""

import asyncio

import pytest

from pricecrawler.class_extractor import class_selector, crawl_by_class, parse_elements
from pricecrawler.testing import FakeLauncher, FakeListing, fast_config

URL = "https://example.com/listings"

CARDS = [
    {
        "index": i,
        "text": f"Listing {i}",
        "html": f"<span>Listing {i}</span>",
        "tagName": "div",
        "attributes": {"class": "listing-card", "data-id": str(i)},
    }
    for i in range(4)
]


def test_class_selector():
    assert class_selector("listing-card") == ".listing-card"
    assert class_selector(".listing-card") == ".listing-card"
    assert class_selector("  _private ") == "._private"

    with pytest.raises(ValueError):
        class_selector("two classes")
    with pytest.raises(ValueError):
        class_selector("9lives")


def test_parse_elements():
    elements = parse_elements(CARDS[:2] + ["junk"])

    assert [element.index for element in elements] == [0, 1]
    assert elements[1].to_dict() == CARDS[1]
    assert parse_elements(None) == []


def test_crawl_by_class():
    launcher = FakeLauncher({URL: FakeListing(table=False, elements=CARDS)})

    result = asyncio.run(crawl_by_class(URL, "listing-card", fast_config(), launcher=launcher))

    assert result.count == 4
    assert result.sample_classes == []
    assert result.to_dict()["className"] == "listing-card"
    assert result.to_dict()["count"] == 4
    assert launcher.browsers[0].closed
    assert launcher.pages[0].closed


def test_crawl_by_class_without_matches_samples_page_classes():
    classes = [f"class-{i:02d}" for i in range(30)]
    launcher = FakeLauncher({URL: FakeListing(table=False, sample_classes=classes)})

    result = asyncio.run(crawl_by_class(URL, "missing", fast_config(), launcher=launcher))

    assert result.elements == []
    assert result.sample_classes == classes[:20]
