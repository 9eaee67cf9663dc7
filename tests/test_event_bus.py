"""Tests for the client EventBus."""

import pytest

from resilient_llm.events.bus import HISTORY_SIZE, EventBus
from resilient_llm.types import ClientEvent, EventType


@pytest.fixture
def bus():
    return EventBus()


class TestSubscribeAndPublish:
    async def test_async_handler(self, bus: EventBus):
        received = []

        async def handler(event: ClientEvent):
            received.append(event)

        bus.subscribe(EventType.COMPLETION_REQUEST, handler)
        ev = await bus.publish(EventType.COMPLETION_REQUEST, {"model": "m"})

        assert received == [ev]
        assert ev.data == {"model": "m"}

    async def test_sync_handler(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.COMPLETION_TRUNCATED, received.append)
        await bus.publish(EventType.COMPLETION_TRUNCATED)
        assert len(received) == 1
        assert received[0].data == {}

    async def test_publish_copies_data(self, bus: EventBus):
        data = {"model": "m"}
        ev = await bus.publish(EventType.COMPLETION_RESPONSE, data)
        ev.data["extra"] = 1
        assert data == {"model": "m"}

    async def test_emit_prebuilt_event(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.STREAM_STARTED, received.append)
        ev = ClientEvent(type=EventType.STREAM_STARTED, data={"model": "m"})
        await bus.emit(ev)
        assert received == [ev]

    async def test_no_cross_delivery(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.STREAM_STARTED, received.append)
        await bus.publish(EventType.STREAM_FINISHED)
        assert received == []

    async def test_wildcard(self, bus: EventBus):
        received = []
        bus.subscribe("*", received.append)
        await bus.publish(EventType.COMPLETION_RETRY)
        await bus.publish(EventType.COMPLETION_ERROR)
        assert [e.type for e in received] == [
            EventType.COMPLETION_RETRY,
            EventType.COMPLETION_ERROR,
        ]

    async def test_string_key_matches_enum(self, bus: EventBus):
        received = []
        bus.subscribe("completion.truncated", received.append)
        await bus.publish(EventType.COMPLETION_TRUNCATED)
        assert len(received) == 1


class TestErrorIsolation:
    async def test_failing_handler_does_not_block_others(self, bus: EventBus):
        received = []

        async def broken(event: ClientEvent):
            raise RuntimeError("boom")

        bus.subscribe(EventType.COMPLETION_ERROR, broken)
        bus.subscribe(EventType.COMPLETION_ERROR, received.append)
        await bus.publish(EventType.COMPLETION_ERROR)

        assert len(received) == 1

    async def test_failing_sync_handler_logged(self, bus: EventBus, caplog):
        def broken(event: ClientEvent):
            raise ValueError("bad")

        bus.subscribe("*", broken)
        with caplog.at_level("ERROR", logger="resilient_llm.events.bus"):
            await bus.publish(EventType.COMPLETION_RETRY)
        assert "completion.retry" in caplog.text


class TestCountsAndHistory:
    async def test_count_per_type(self, bus: EventBus):
        await bus.publish(EventType.COMPLETION_RETRY)
        await bus.publish(EventType.COMPLETION_RETRY)
        await bus.publish(EventType.COMPLETION_RESPONSE)
        assert bus.count(EventType.COMPLETION_RETRY) == 2
        assert bus.count("completion.response") == 1
        assert bus.count(EventType.COMPLETION_ERROR) == 0

    async def test_history_capped_but_counts_are_not(self, bus: EventBus):
        for _ in range(HISTORY_SIZE + 5):
            await bus.publish(EventType.COMPLETION_REQUEST)
        assert len(bus.history) == HISTORY_SIZE
        assert bus.count(EventType.COMPLETION_REQUEST) == HISTORY_SIZE + 5
