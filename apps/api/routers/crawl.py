"""
Crawl Router for the Price History Crawler API
Starts batch crawls and streams their progress as server-sent events
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from apps.api.models.schemas import CrawlRequest, ErrorResponse, SessionInfo, SessionListResponse
from apps.api.services.batch_runner import BatchRunner
from pricecrawler.config import CrawlerConfig
from pricecrawler.progress import QueueSink, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Crawl"])


# =============================================================================
# Dependencies
# =============================================================================

def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_batch_runner(registry: SessionRegistry = Depends(get_registry)) -> BatchRunner:
    return BatchRunner(registry, CrawlerConfig.from_env())


# =============================================================================
# Streaming
# =============================================================================

async def stream_messages(sink: QueueSink) -> AsyncIterator[Dict[str, Any]]:
    """Turn queued payloads into SSE messages until the sink is closed."""
    async for payload in sink.messages():
        yield {"data": json.dumps(payload)}


def _track(request: Request, task: asyncio.Task) -> None:
    tasks = request.app.state.tasks
    tasks.add(task)
    task.add_done_callback(tasks.discard)


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/crawl", responses={400: {"model": ErrorResponse}})
async def start_crawl(
    body: CrawlRequest,
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
    runner: BatchRunner = Depends(get_batch_runner)
):
    """
    Crawl the price history of every URL in the body.

    The response is an event stream: one message per progress event, then
    either ``complete`` followed by ``saved``, or a single ``error``.
    The crawl keeps running if the client disconnects.
    """
    urls = list(body.urls)
    session_id = registry.new_session_id()
    sink = QueueSink()
    registry.register(session_id, sink)

    logger.info(f"Starting crawl session {session_id} for {len(urls)} URL(s)")

    task = asyncio.create_task(runner.run(session_id, urls, sink, body.options.to_options()))
    _track(request, task)

    return EventSourceResponse(stream_messages(sink))


@router.get("/api/sessions", response_model=SessionListResponse)
async def list_sessions(registry: SessionRegistry = Depends(get_registry)):
    """List crawl sessions that are still running."""
    sessions = [
        SessionInfo(
            session_id=session.session_id,
            started_at=session.started_at,
            elapsed_ms=session.elapsed_ms(),
        )
        for session in registry.active_sessions()
    ]
    return SessionListResponse(count=len(sessions), sessions=sessions)
