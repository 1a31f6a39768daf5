"""Tests for publishing run summaries to Redis."""

from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest
import redis

from apps.extractor.extractor import ExtractionResult, ExtractionState
from apps.extractor.orchestrator import RunSummary
from apps.extractor.publisher import publish_extraction_event
from utils.mq import RedisPublisher, encode_message
from utils.schemas import RedisEvent


@pytest.fixture
def summary() -> RunSummary:
    ok = ExtractionResult(tenant_id="t1", state=ExtractionState.SUCCESS, events_by_category={"CUSTOM": 3})
    bad = ExtractionResult(tenant_id="t2", state=ExtractionState.FAILED, error="Connection test failed")
    return RunSummary(results=[ok, bad], skipped=["t3"])


@pytest.fixture
def publisher() -> MagicMock:
    publisher = MagicMock(spec=RedisPublisher)
    publisher.channel = "extraction.completed"
    publisher.publish = AsyncMock(return_value=2)
    publisher.close = AsyncMock()
    return publisher


@pytest.mark.asyncio
async def test_publishes_summary_event(summary, publisher) -> None:
    receivers = await publish_extraction_event(summary, publisher=publisher)

    assert receivers == 2
    event = publisher.publish.await_args.args[0]
    assert isinstance(event, RedisEvent)
    assert event.type == "extraction_completed"
    assert (event.succeeded, event.failed, event.skipped, event.events) == (1, 1, 1, 3)
    assert [t["tenant_id"] for t in event.tenants] == ["t1", "t2"]
    publisher.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_publish_failure_is_raised_and_connection_closed(summary, publisher) -> None:
    publisher.publish.side_effect = redis.ConnectionError("redis down")

    with pytest.raises(redis.ConnectionError):
        await publish_extraction_event(summary, publisher=publisher)

    publisher.close.assert_awaited_once()


def test_encode_message_serializes_models(summary) -> None:
    decoded = orjson.loads(encode_message(RedisEvent(**summary.to_message())))

    assert decoded["type"] == "extraction_completed"
    assert isinstance(decoded["ts"], str)
    assert decoded["tenants"][1]["error"] == "Connection test failed"


@pytest.mark.asyncio
async def test_redis_publisher_uses_default_channel() -> None:
    client = MagicMock()
    client.publish = AsyncMock(return_value=1)
    client.aclose = AsyncMock()
    publisher = RedisPublisher(redis_url="redis://localhost:6379/0", channel="runs")
    publisher.client = client

    async with publisher:
        assert await publisher.publish({"type": "ping"}) == 1

    client.publish.assert_awaited_once_with("runs", b'{"type":"ping"}')
    client.aclose.assert_awaited_once()
    assert publisher.client is None
