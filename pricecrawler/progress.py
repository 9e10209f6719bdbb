"""
Progress reporting for crawl sessions.

Provides:
- SessionRegistry: live crawl sessions keyed by session id, passed around
  explicitly instead of living in a module global
- Progress sinks: where events for one session go (asyncio queue for the
  event stream, callback, log lines, rich console)
- ProgressEmitter: best-effort relay from crawlers to whichever sink is
  attached to a session at the time of the call

Usage:
    registry = SessionRegistry()
    emitter = ProgressEmitter(registry)

    with registry.session(session_id, QueueSink()) as session:
        emitter.emit(session_id, event)   # forwarded to the queue
    emitter.emit(session_id, event)       # session gone: silently dropped
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from rich.console import Console

from .models import CrawlStatus, ProgressEvent, utc_timestamp

logger = logging.getLogger(__name__)


# =============================================================================
# Sinks
# =============================================================================

class ProgressSink(ABC):
    """Destination for the progress events of one session."""

    @abstractmethod
    def send(self, event: ProgressEvent) -> None:
        """Deliver a progress event."""
        pass


class QueueSink(ProgressSink):
    """
    Sink backed by an asyncio queue, drained by the event-stream response.

    Besides progress events it carries the batch-level terminal messages
    (complete / saved / error) and a None sentinel that ends the stream.
    """

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()
        self.closed = False

    def send(self, event: ProgressEvent) -> None:
        self.send_message(event.to_dict())

    def send_message(self, payload: Dict[str, Any]) -> None:
        if self.closed:
            raise RuntimeError("sink is closed")
        self.queue.put_nowait(payload)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(None)

    async def messages(self):
        """Yield queued payloads until the sink is closed."""
        while True:
            payload = await self.queue.get()
            if payload is None:
                break
            yield payload


class CallbackSink(ProgressSink):
    """Sink that hands each event to a plain callable."""

    def __init__(self, callback: Callable[[ProgressEvent], None]):
        self.callback = callback

    def send(self, event: ProgressEvent) -> None:
        self.callback(event)


class CollectingSink(ProgressSink):
    """Sink that keeps every event in memory, in arrival order."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    def send(self, event: ProgressEvent) -> None:
        self.events.append(event)


class LoggingSink(ProgressSink):
    """Sink that writes each event as a log line."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def send(self, event: ProgressEvent) -> None:
        level = logging.ERROR if event.status == CrawlStatus.ERROR else logging.INFO
        self.log.log(
            level,
            f"[{event.url_index + 1}/{event.total_urls}] {CrawlStatus(event.status).value}: "
            f"{event.message} ({event.url})"
        )


class ConsoleSink(ProgressSink):
    """Sink that prints coloured status lines to a rich console."""

    STYLES = {
        CrawlStatus.STARTING: "cyan",
        CrawlStatus.LOADING: "blue",
        CrawlStatus.SCRAPING: "yellow",
        CrawlStatus.COMPLETED: "green",
        CrawlStatus.ERROR: "bold red",
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def send(self, event: ProgressEvent) -> None:
        status = CrawlStatus(event.status)
        style = self.STYLES.get(status, "white")
        line = f"[{style}]{status.value:<9}[/] [dim]{event.url_index + 1}/{event.total_urls}[/] {event.message}"
        if event.error and event.error != event.message:
            line += f" [red]({event.error})[/]"
        self.console.print(line, highlight=False)


# =============================================================================
# Session registry
# =============================================================================

@dataclass
class CrawlSession:
    """A live batch crawl and the sink its progress goes to."""
    session_id: str
    sink: ProgressSink
    started_at: str = field(default_factory=utc_timestamp)
    _started_monotonic: float = field(default_factory=time.monotonic, repr=False)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started_monotonic) * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "startedAt": self.started_at,
            "elapsedMs": self.elapsed_ms(),
        }


class SessionRegistry:
    """
    Live crawl sessions keyed by session id.

    Entries are only inserted, looked up and deleted whole, all from the
    event loop thread, so no locking is needed.
    """

    def __init__(self):
        self._sessions: Dict[str, CrawlSession] = {}
        self._last_id = 0

    def new_session_id(self) -> str:
        """Millisecond timestamp id, bumped if it would collide."""
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        while str(candidate) in self._sessions:
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    def register(self, session_id: str, sink: ProgressSink) -> CrawlSession:
        session = CrawlSession(session_id=session_id, sink=sink)
        self._sessions[session_id] = session
        logger.debug(f"Session {session_id} registered")
        return session

    def get(self, session_id: str) -> Optional[CrawlSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.debug(f"Session {session_id} removed")
        return removed

    @contextmanager
    def session(self, session_id: str, sink: ProgressSink) -> Iterator[CrawlSession]:
        """Register a session for the duration of a ``with`` block."""
        session = self.register(session_id, sink)
        try:
            yield session
        finally:
            self.remove(session_id)

    def active_sessions(self) -> List[CrawlSession]:
        return list(self._sessions.values())

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


# =============================================================================
# Emitter
# =============================================================================

class ProgressEmitter:
    """
    Relay progress events to the sink of a registered session.

    Delivery is best effort while the session is registered. Nothing is
    buffered or retried, and emitting for an unknown session is a no-op.
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    def emit(self, session_id: Optional[str], event: ProgressEvent) -> bool:
        """
        Forward ``event`` to the session's sink.

        Returns:
            True if a sink accepted the event, False otherwise
        """
        if session_id is None:
            return False
        session = self.registry.get(session_id)
        if session is None:
            return False
        try:
            session.sink.send(event)
        except Exception as e:
            logger.debug(f"Progress sink for session {session_id} rejected event: {e}")
            return False
        return True

    def for_url(
        self,
        session_id: Optional[str],
        url_index: int,
        total_urls: int,
        url: str
    ) -> "UrlProgress":
        return UrlProgress(self, session_id, url_index, total_urls, url)


class UrlProgress:
    """Progress reporter bound to one URL of one session."""

    def __init__(
        self,
        emitter: Optional[ProgressEmitter],
        session_id: Optional[str],
        url_index: int,
        total_urls: int,
        url: str
    ):
        self.emitter = emitter
        self.session_id = session_id
        self.url_index = url_index
        self.total_urls = total_urls
        self.url = url

    def emit(self, status: CrawlStatus, message: str, error: Optional[str] = None) -> bool:
        if self.emitter is None:
            return False
        event = ProgressEvent(
            session_id=self.session_id or "",
            url_index=self.url_index,
            total_urls=self.total_urls,
            status=status,
            url=self.url,
            message=message,
            error=error,
        )
        return self.emitter.emit(self.session_id, event)

    @classmethod
    def silent(cls, url: str) -> "UrlProgress":
        """Reporter that drops everything (single-URL runs without a session)."""
        return cls(None, None, 0, 1, url)
