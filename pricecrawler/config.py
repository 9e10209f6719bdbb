"""
Crawler configuration.

Every wait the crawler performs is bounded by one of the values below. They
are policy: the target site never signals "last page" through the URL, so the
crawler infers it from DOM affordances that may legitimately vanish, and each
inference has to give up after a fixed time.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

ENV_PREFIX = "PRICECRAWLER_"


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


@dataclass
class CrawlerConfig:
    """Configuration for a crawl run (single URL or batch)."""
    # Batch
    concurrency: int = 3          # browser instances in the pool
    headless: bool = True

    # Bounded waits (milliseconds)
    timeout_ms: int = 30000       # navigation, waits for network idle
    table_wait_ms: int = 10000    # table root marker
    row_wait_ms: int = 5000       # collapsed rows on each page
    idle_wait_ms: int = 3000      # network idle after a page change
    click_timeout_ms: int = 5000

    # Fixed pauses (seconds)
    scroll_pause: float = 2.0     # after scrolling to the bottom on load
    filter_pause: float = 1.0     # after removing filter chips
    expand_pause: float = 0.8     # after expanding detail rows
    settle_pause: float = 2.0     # after clicking "next"

    # Browser
    user_agent: str = DEFAULT_USER_AGENT
    launch_args: List[str] = field(default_factory=lambda: [
        '--no-sandbox',
        '--disable-setuid-sandbox',
        '--disable-dev-shm-usage',
        '--disable-blink-features=AutomationControlled',
    ])

    # Output
    output_dir: Path = Path("output")

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        for name in ("timeout_ms", "table_wait_ms", "row_wait_ms", "idle_wait_ms", "click_timeout_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        self.output_dir = Path(self.output_dir)

    @classmethod
    def from_options(
        cls,
        options: Optional[Mapping[str, Any]] = None,
        base: Optional["CrawlerConfig"] = None
    ) -> "CrawlerConfig":
        """
        Build a config from the batch request options bag.

        Recognised keys are ``concurrency``, ``headless`` and ``timeout``
        (milliseconds). Falsy numbers fall back to the defaults, and
        ``headless`` is only disabled by an explicit ``False``.

        Args:
            options: Options from the request body
            base: Config to start from (defaults to ``CrawlerConfig()``)

        Returns:
            New CrawlerConfig
        """
        options = options or {}
        base = base or cls()
        overrides: Dict[str, Any] = {}

        if options.get("concurrency"):
            overrides["concurrency"] = int(options["concurrency"])
        if "headless" in options and options["headless"] is not None:
            overrides["headless"] = options["headless"] is not False
        if options.get("timeout"):
            overrides["timeout_ms"] = int(options["timeout"])

        return replace(base, **overrides)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CrawlerConfig":
        """
        Build a config from ``PRICECRAWLER_*`` environment variables.

        Supported: CONCURRENCY, HEADLESS, TIMEOUT_MS, TABLE_WAIT_MS,
        ROW_WAIT_MS, IDLE_WAIT_MS, OUTPUT_DIR, USER_AGENT.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _int(name: str, default: int) -> int:
            raw = env.get(ENV_PREFIX + name)
            return int(raw) if raw else default

        return cls(
            concurrency=_int("CONCURRENCY", defaults.concurrency),
            headless=_parse_bool(env.get(ENV_PREFIX + "HEADLESS"), defaults.headless),
            timeout_ms=_int("TIMEOUT_MS", defaults.timeout_ms),
            table_wait_ms=_int("TABLE_WAIT_MS", defaults.table_wait_ms),
            row_wait_ms=_int("ROW_WAIT_MS", defaults.row_wait_ms),
            idle_wait_ms=_int("IDLE_WAIT_MS", defaults.idle_wait_ms),
            output_dir=Path(env.get(ENV_PREFIX + "OUTPUT_DIR") or defaults.output_dir),
            user_agent=env.get(ENV_PREFIX + "USER_AGENT") or defaults.user_agent,
        )
