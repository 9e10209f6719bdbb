"""
Tests for session registry, progress sinks and the emitter.
Run with: pytest pricecrawler/test_progress.py
"""

import asyncio
import logging

import pytest

from pricecrawler.models import CrawlStatus, ProgressEvent
from pricecrawler.progress import (
    CallbackSink,
    CollectingSink,
    LoggingSink,
    ProgressEmitter,
    QueueSink,
    SessionRegistry,
    UrlProgress,
)


def make_event(session_id="s1", status=CrawlStatus.STARTING, message="Navigating to page...", error=None):
    return ProgressEvent(
        session_id=session_id,
        url_index=0,
        total_urls=2,
        status=status,
        url="https://example.com/listing/1",
        message=message,
        error=error,
    )


# ============================================================================
# Registry
# ============================================================================

def test_registry_session_context():
    registry = SessionRegistry()
    sink = CollectingSink()

    with registry.session("s1", sink) as session:
        assert "s1" in registry
        assert len(registry) == 1
        assert registry.get("s1") is session
        assert session.sink is sink

    assert "s1" not in registry
    assert registry.get("s1") is None


def test_registry_removes_session_on_error():
    registry = SessionRegistry()

    with pytest.raises(RuntimeError):
        with registry.session("s1", CollectingSink()):
            raise RuntimeError("boom")

    assert len(registry) == 0


def test_session_ids_are_unique():
    registry = SessionRegistry()
    ids = [registry.new_session_id() for _ in range(50)]

    assert len(set(ids)) == 50
    assert all(session_id.isdigit() for session_id in ids)


def test_active_sessions():
    registry = SessionRegistry()
    registry.register("a", CollectingSink())
    registry.register("b", CollectingSink())
    registry.remove("a")

    sessions = registry.active_sessions()
    assert [session.session_id for session in sessions] == ["b"]
    assert set(sessions[0].to_dict()) == {"sessionId", "startedAt", "elapsedMs"}
    assert not registry.remove("a")


# ============================================================================
# Emitter
# ============================================================================

def test_emit_delivers_in_order():
    registry = SessionRegistry()
    emitter = ProgressEmitter(registry)
    sink = CollectingSink()

    with registry.session("s1", sink):
        assert emitter.emit("s1", make_event(message="first"))
        assert emitter.emit("s1", make_event(message="second"))

    assert [event.message for event in sink.events] == ["first", "second"]


def test_emit_after_removal_is_dropped():
    registry = SessionRegistry()
    emitter = ProgressEmitter(registry)
    sink = CollectingSink()

    with registry.session("s1", sink):
        pass

    assert not emitter.emit("s1", make_event())
    assert not emitter.emit(None, make_event())
    assert sink.events == []


def test_emit_survives_failing_sink():
    registry = SessionRegistry()
    emitter = ProgressEmitter(registry)

    def explode(event):
        raise ValueError("sink broken")

    with registry.session("s1", CallbackSink(explode)):
        assert not emitter.emit("s1", make_event())


def test_url_progress_builds_events():
    registry = SessionRegistry()
    sink = CollectingSink()
    progress = ProgressEmitter(registry).for_url("s1", 1, 3, "https://example.com/2")

    with registry.session("s1", sink):
        progress.emit(CrawlStatus.ERROR, "Timeout", error="Timeout")

    event = sink.events[0]
    assert event.to_dict() == {
        "sessionId": "s1",
        "urlIndex": 1,
        "totalUrls": 3,
        "status": "error",
        "url": "https://example.com/2",
        "message": "Timeout",
        "error": "Timeout",
    }


def test_silent_progress():
    assert not UrlProgress.silent("https://example.com").emit(CrawlStatus.STARTING, "x")


def test_event_without_error_has_no_error_key():
    assert "error" not in make_event().to_dict()


# ============================================================================
# Sinks
# ============================================================================

def test_queue_sink_streams_until_closed():
    async def run():
        sink = QueueSink()
        sink.send(make_event(message="one"))
        sink.send_message({"type": "complete", "results": []})
        sink.close()
        return [payload async for payload in sink.messages()]

    payloads = asyncio.run(run())

    assert payloads[0]["message"] == "one"
    assert payloads[0]["status"] == "starting"
    assert payloads[1] == {"type": "complete", "results": []}


def test_queue_sink_rejects_after_close():
    sink = QueueSink()
    sink.close()
    sink.close()

    with pytest.raises(RuntimeError):
        sink.send(make_event())


def test_logging_sink(caplog):
    log = logging.getLogger("progress-sink-test")

    with caplog.at_level(logging.INFO, logger="progress-sink-test"):
        LoggingSink(log).send(make_event(status=CrawlStatus.ERROR, message="Timeout"))

    assert "[1/2] error: Timeout" in caplog.text
    assert caplog.records[0].levelno == logging.ERROR
