"""
Generic class-based element extraction.

Collects text, inner markup, tag name and attributes of every element that
carries a given CSS class. Used by the ``crawl`` CLI command for quick
inspection of pages other than the price history table.
"""

import logging
import re
from typing import Any, List, Optional

from .config import CrawlerConfig
from .coordinator import BrowserPool, PlaywrightLauncher
from .models import ClassCrawlResult, ElementRecord
from .page_session import PageSession

logger = logging.getLogger(__name__)

ELEMENT_WAIT_MS = 5000
SAMPLE_CLASS_LIMIT = 20

_CLASS_NAME_RE = re.compile(r"^-?[_a-zA-Z]+[_a-zA-Z0-9-]*$")

EXTRACT_ELEMENTS_JS = """
(selector) => Array.from(document.querySelectorAll(selector)).map((element, index) => ({
    index: index,
    text: element.innerText || element.textContent || '',
    html: element.innerHTML,
    tagName: element.tagName.toLowerCase(),
    attributes: Array.from(element.attributes).reduce((attrs, attr) => {
        attrs[attr.name] = attr.value;
        return attrs;
    }, {}),
}))
"""

SAMPLE_CLASSES_JS = """
(limit) => {
    const classes = new Set();
    document.querySelectorAll('*').forEach((el) => {
        el.classList.forEach((c) => classes.add(c));
    });
    return Array.from(classes).sort().slice(0, limit);
}
"""


def class_selector(class_name: str) -> str:
    """
    CSS selector for a class name; a leading dot is accepted.

    Raises:
        ValueError: If the name is not a valid CSS class identifier
    """
    name = class_name.strip().lstrip(".")
    if not _CLASS_NAME_RE.match(name):
        raise ValueError(f"Invalid class name: {class_name!r}")
    return f".{name}"


def parse_elements(raw: Any) -> List[ElementRecord]:
    if not isinstance(raw, list):
        return []
    elements = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        elements.append(ElementRecord(
            index=int(item.get("index", len(elements))),
            text=str(item.get("text") or ""),
            html=str(item.get("html") or ""),
            tag_name=str(item.get("tagName") or ""),
            attributes={str(k): str(v) for k, v in (item.get("attributes") or {}).items()},
        ))
    return elements


async def extract_by_class(session: PageSession, url: str, class_name: str) -> ClassCrawlResult:
    """Load ``url`` in ``session`` and collect every element with ``class_name``."""
    selector = class_selector(class_name)

    await session.navigate(url)
    await session.scroll_to_bottom()
    await session.pause(session.config.scroll_pause)

    logger.info(f"Looking for elements with class: {class_name}")
    if not await session.wait_for(selector, ELEMENT_WAIT_MS):
        logger.info(f"Selector {selector} not found after waiting, attempting scrape anyway")

    result = ClassCrawlResult(
        url=url,
        class_name=class_name,
        elements=parse_elements(await session.evaluate(EXTRACT_ELEMENTS_JS, selector)),
    )

    if not result.elements:
        sample = await session.evaluate(SAMPLE_CLASSES_JS, SAMPLE_CLASS_LIMIT)
        result.sample_classes = [str(c) for c in (sample or [])]
        logger.info(f"No elements found with class: {class_name}")
    else:
        logger.info(f"Found {result.count} element(s)")

    return result


async def crawl_by_class(
    url: str,
    class_name: str,
    config: Optional[CrawlerConfig] = None,
    launcher: Any = None
) -> ClassCrawlResult:
    """Launch a browser, run ``extract_by_class`` and tear everything down."""
    config = config or CrawlerConfig()
    pool = BrowserPool(1, launcher or PlaywrightLauncher(config))
    try:
        await pool.start()
        async with await PageSession.open(pool.for_index(0), config) as session:
            return await extract_by_class(session, url, class_name)
    finally:
        await pool.close()
