"""
Background batch runner for the crawl API.

Runs one batch crawl for a registered session and writes the terminal
messages (complete + saved, or error) to the session's queue sink before
closing it, which ends the event stream.
"""

import logging
import time
from typing import Any, List, Mapping, Optional, Sequence

from apps.api.models.schemas import CompleteMessage, ErrorMessage, SavedMessage
from pricecrawler.adapters import PageAdapter
from pricecrawler.config import CrawlerConfig
from pricecrawler.coordinator import CrawlCoordinator
from pricecrawler.models import BatchOutcome
from pricecrawler.progress import QueueSink, SessionRegistry
from pricecrawler.storage import save_batch_results

logger = logging.getLogger(__name__)


class BatchRunner:
    """
    Batch crawl orchestration for one API request.

    Usage:
        runner = BatchRunner(registry, CrawlerConfig.from_env())
        registry.register(session_id, sink)
        outcomes = await runner.run(session_id, urls, sink, options)
    """

    def __init__(
        self,
        registry: SessionRegistry,
        config: Optional[CrawlerConfig] = None,
        launcher: Any = None,
        adapter: Optional[PageAdapter] = None
    ):
        """
        Initialize the runner.

        Args:
            registry: Registry the session is registered in
            config: Base settings; request options are applied on top
            launcher: Browser launcher override, mainly for tests
            adapter: Table layout (defaults to the PropertyGuru adapter)
        """
        self.registry = registry
        self.config = config or CrawlerConfig()
        self.launcher = launcher
        self.adapter = adapter

    async def run(
        self,
        session_id: str,
        urls: Sequence[str],
        sink: QueueSink,
        options: Optional[Mapping[str, Any]] = None
    ) -> Optional[List[BatchOutcome]]:
        """
        Crawl ``urls`` and report the result on ``sink``.

        The session is removed from the registry and the sink is closed
        whatever happens.

        Returns:
            Per-URL outcomes, or None if the batch failed as a whole
        """
        started = time.monotonic()
        urls = list(urls)

        try:
            try:
                config = CrawlerConfig.from_options(options, base=self.config)
                logger.info(
                    f"Session {session_id}: crawling {len(urls)} URL(s) "
                    f"with {config.concurrency} browser(s)"
                )

                coordinator = CrawlCoordinator(
                    config,
                    registry=self.registry,
                    adapter=self.adapter,
                    launcher=self.launcher,
                )
                outcomes = await coordinator.crawl_many(urls, session_id)
            except Exception as e:
                logger.error(f"Session {session_id} failed: {e}", exc_info=True)
                sink.send_message(ErrorMessage(error=str(e) or type(e).__name__).model_dump())
                return None

            total_time = int((time.monotonic() - started) * 1000)
            sink.send_message(CompleteMessage(
                results=[outcome.to_dict() for outcome in outcomes],
                sessionId=session_id,
                totalTime=total_time,
            ).model_dump())

            succeeded = sum(1 for outcome in outcomes if outcome.success)
            logger.info(
                f"Session {session_id}: {succeeded}/{len(outcomes)} URL(s) succeeded in {total_time}ms"
            )

            # The batch already completed; a failed write only loses the artifact.
            try:
                path = save_batch_results(session_id, len(urls), outcomes, config.output_dir)
            except OSError as e:
                logger.error(f"Session {session_id}: could not save results: {e}")
            else:
                sink.send_message(SavedMessage(file=str(path)).model_dump())

            return outcomes

        finally:
            self.registry.remove(session_id)
            sink.close()
