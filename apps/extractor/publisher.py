"""
Event Publisher for Extractor Service

Publishes an extraction-completed event to Redis Pub/Sub after every
extraction run, so other services can react without polling the database.

Usage:
    from apps.extractor.publisher import publish_extraction_event

    await publish_extraction_event(summary)
"""

import logging
from typing import Optional

from apps.extractor.orchestrator import RunSummary
from utils.mq import RedisPublisher
from utils.schemas import RedisEvent

logger = logging.getLogger(__name__)


async def publish_extraction_event(
    summary: RunSummary,
    publisher: Optional[RedisPublisher] = None,
) -> int:
    """
    Publish a run summary on the extraction channel.

    Args:
        summary: Result of ExtractionOrchestrator.run_all()
        publisher: Publisher to use, a new RedisPublisher by default.
            It is closed afterwards either way.

    Returns:
        Number of subscribers that received the event

    Raises:
        redis.RedisError: If publishing fails
    """
    publisher = publisher or RedisPublisher()
    event = RedisEvent(**summary.to_message())

    try:
        receivers = await publisher.publish(event)
    except Exception as e:
        logger.error(
            "Failed to publish extraction event",
            extra={"channel": publisher.channel, "error": str(e)},
        )
        raise
    finally:
        await publisher.close()

    logger.info(
        "Published extraction event",
        extra={
            "channel": publisher.channel,
            "receivers": receivers,
            "succeeded": event.succeeded,
            "failed": event.failed,
            "events": event.events,
        },
    )
    return receivers
