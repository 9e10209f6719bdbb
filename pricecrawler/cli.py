#!/usr/bin/env python3
"""
Command line interface for the price history crawler.

Usage:
    pricecrawler price-history -u https://www.propertyguru.com.sg/listing/... -o history.json
    pricecrawler crawl -u https://example.com -c listing-card -o cards.json
    pricecrawler batch -f urls.txt --concurrency 3
    pricecrawler serve --port 3001
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .adapters import ADAPTERS, get_adapter
from .class_extractor import crawl_by_class
from .config import CrawlerConfig
from .coordinator import CrawlCoordinator, crawl_single
from .logging_utils import setup_logging
from .models import BatchOutcome, ClassCrawlResult, CrawlResult
from .progress import ConsoleSink, SessionRegistry
from .storage import save_batch_results, write_json

TRANSACTION_PREVIEW = 5
ELEMENT_PREVIEW = 3
TEXT_PREVIEW_CHARS = 100

console = Console()


def _headless(value: str) -> bool:
    # Anything but an explicit "false" means headless.
    return value.strip().lower() != "false"


# ============================================================================
# Previews
# ============================================================================

def print_transactions_preview(result: CrawlResult) -> None:
    transactions = result.transactions
    console.print(
        f"\n[bold]Total transactions scraped:[/] {result.total_transactions} "
        f"across {result.total_pages} page(s)"
    )
    if not transactions:
        return

    table = Table(title="Preview of scraped transactions", show_lines=False)
    for column in ("#", "Date", "Bedrooms", "Size", "Price", "Price per sqft", "Floor", "Address"):
        table.add_column(column)

    for idx, item in enumerate(transactions[:TRANSACTION_PREVIEW], start=1):
        table.add_row(
            str(idx),
            item.get("date", ""),
            item.get("bedrooms", ""),
            item.get("size", ""),
            item.get("price", ""),
            item.get("pricePerSqft", ""),
            item.get("floor", "N/A"),
            item.get("address", "N/A"),
        )
    console.print(table)

    if len(transactions) > TRANSACTION_PREVIEW:
        console.print(f"... and {len(transactions) - TRANSACTION_PREVIEW} more transaction(s)")


def print_elements_preview(result: ClassCrawlResult) -> None:
    console.print(f"\n[bold]Found {result.count} element(s)[/]")
    for idx, element in enumerate(result.elements[:ELEMENT_PREVIEW], start=1):
        text = element.text
        if len(text) > TEXT_PREVIEW_CHARS:
            text = text[:TEXT_PREVIEW_CHARS] + "..."
        console.print(Panel(f"Tag: {element.tag_name}\nText: {text}", title=f"Element {idx}"))

    if result.count > ELEMENT_PREVIEW:
        console.print(f"... and {result.count - ELEMENT_PREVIEW} more element(s)")


def print_batch_summary(outcomes: Sequence[BatchOutcome]) -> None:
    table = Table(title="Batch results")
    table.add_column("#")
    table.add_column("URL", overflow="fold")
    table.add_column("Status")
    table.add_column("Transactions", justify="right")
    table.add_column("Pages", justify="right")

    for idx, outcome in enumerate(outcomes, start=1):
        if outcome.success and outcome.data is not None:
            table.add_row(
                str(idx), outcome.url, "[green]ok[/]",
                str(outcome.data.total_transactions), str(outcome.data.total_pages),
            )
        else:
            table.add_row(str(idx), outcome.url, f"[red]failed[/] {outcome.error or ''}", "-", "-")
    console.print(table)


# ============================================================================
# Commands
# ============================================================================

def run_price_history(args: argparse.Namespace) -> int:
    config = CrawlerConfig.from_env()
    config = CrawlerConfig.from_options({"headless": _headless(args.headless)}, base=config)

    console.print(f"Crawling price history for [cyan]{args.url}[/]")
    result = asyncio.run(crawl_single(args.url, config, adapter=get_adapter(args.adapter)))

    write_json(args.output, result.to_dict())
    console.print(f"Data saved to {args.output}")
    print_transactions_preview(result)
    return 0


def run_class_crawl(args: argparse.Namespace) -> int:
    config = CrawlerConfig.from_env()
    config = CrawlerConfig.from_options({"headless": _headless(args.headless)}, base=config)

    result = asyncio.run(crawl_by_class(args.url, args.class_name, config))

    if not result.elements:
        console.print(f"[yellow]No elements found with class: {args.class_name}[/]")
        if result.sample_classes:
            console.print(f"Sample classes found on page: {', '.join(result.sample_classes)}...")
        return 0

    write_json(args.output, result.to_dict())
    console.print(f"Data saved to {args.output}")
    print_elements_preview(result)
    return 0


def _read_urls(args: argparse.Namespace) -> List[str]:
    urls = list(args.urls or [])
    if args.file:
        with open(args.file, 'r', encoding='utf-8') as f:
            urls.extend(line.strip() for line in f)
    return [url for url in urls if url and not url.startswith("#")]


async def _run_batch(urls: List[str], config: CrawlerConfig) -> int:
    registry = SessionRegistry()
    session_id = registry.new_session_id()
    coordinator = CrawlCoordinator(config, registry=registry)

    with registry.session(session_id, ConsoleSink()):
        outcomes = await coordinator.crawl_many(urls, session_id)

    path = save_batch_results(session_id, len(urls), outcomes, config.output_dir)
    print_batch_summary(outcomes)
    console.print(f"Results saved to {path}")
    return 0 if all(outcome.success for outcome in outcomes) else 1


def run_batch(args: argparse.Namespace) -> int:
    urls = _read_urls(args)
    if not urls:
        console.print("[red]No URLs given (pass them as arguments or with --file)[/]")
        return 2

    base = CrawlerConfig.from_env()
    if args.output_dir:
        base.output_dir = Path(args.output_dir)
    config = CrawlerConfig.from_options({
        "concurrency": args.concurrency,
        "headless": _headless(args.headless),
        "timeout": args.timeout,
    }, base=base)
    return asyncio.run(_run_batch(urls, config))


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "apps.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info"
    )
    return 0


# ============================================================================
# Parser
# ============================================================================

def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pricecrawler",
        description="Crawl paginated price history tables with a headless browser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Every page of one listing's price history
  pricecrawler price-history -u "https://www.propertyguru.com.sg/listing/for-sale-..." -o history.json

  # All elements with a class
  pricecrawler crawl -u https://example.com -c listing-card

  # Many listings, three browsers
  pricecrawler batch -f urls.txt --concurrency 3
        """
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=Path, help="Also write DEBUG logs to this file")

    subparsers = parser.add_subparsers(dest="command", metavar="command")

    history = subparsers.add_parser(
        "price-history",
        help="Crawl a listing's price history with pagination support"
    )
    history.add_argument("-u", "--url", required=True, help="Listing URL")
    history.add_argument("-o", "--output", default="price-history.json", help="Output JSON file (default: price-history.json)")
    history.add_argument("--headless", default="false", help="Run in headless mode (true/false, default: false)")
    history.add_argument(
        "--adapter",
        default=None,
        choices=sorted(ADAPTERS),
        help="Table layout adapter (default: propertyguru)"
    )
    history.set_defaults(handler=run_price_history)

    crawl = subparsers.add_parser(
        "crawl",
        help="Extract data from elements with a given CSS class"
    )
    crawl.add_argument("-u", "--url", required=True, help="URL to crawl")
    crawl.add_argument("-c", "--class", dest="class_name", required=True, help="CSS class name to search for")
    crawl.add_argument("-o", "--output", default="output.json", help="Output JSON file (default: output.json)")
    crawl.add_argument("--headless", default="false", help="Run in headless mode (true/false, default: false)")
    crawl.set_defaults(handler=run_class_crawl)

    batch = subparsers.add_parser(
        "batch",
        help="Crawl the price history of many listings concurrently"
    )
    batch.add_argument("urls", nargs="*", help="Listing URLs")
    batch.add_argument("-f", "--file", type=Path, help="File with one URL per line")
    options = batch.add_argument_group("Crawl options")
    options.add_argument("--concurrency", type=int, default=3, help="Browser instances (default: 3)")
    options.add_argument("--headless", default="true", help="Run in headless mode (true/false, default: true)")
    options.add_argument("--timeout", type=int, default=30000, help="Navigation timeout in ms (default: 30000)")
    options.add_argument("--output-dir", type=Path, help="Directory for the batch JSON (default: ./output)")
    batch.set_defaults(handler=run_batch)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=os.environ.get("HOST", "0.0.0.0"))
    serve.add_argument("--port", type=int, default=int(os.environ.get("PORT", 3001)))
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve.set_defaults(handler=run_serve)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "handler", None):
        parser.print_help()
        return 0

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        return args.handler(args)
    except KeyboardInterrupt:
        console.print("\n\nInterrupted by user")
        return 130
    except Exception as e:
        console.print(f"[bold red]Failed to crawl:[/] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
