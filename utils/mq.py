"""
Redis Pub/Sub notifier for extraction run completions.

Messages are pydantic models (or plain dicts) serialized with orjson. The
connection pool is created lazily on first publish so constructing a
notifier never touches the network.
"""

import logging
from typing import Any, Optional, Union

import orjson
import redis.asyncio as redis
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.config import settings

logger = logging.getLogger(__name__)

Message = Union[BaseModel, dict[str, Any]]


def encode_message(message: Message) -> bytes:
    """Serialize a message for the wire; datetimes become ISO-8601 strings."""
    if isinstance(message, BaseModel):
        message = message.model_dump(mode="json")
    return orjson.dumps(message, default=str)


class RedisPublisher:
    """Publishes JSON messages to one default channel, retrying on Redis errors."""

    def __init__(self, redis_url: Optional[str] = None, channel: Optional[str] = None) -> None:
        """
        Args:
            redis_url: Redis connection URL, defaults to settings.REDIS_URL
            channel: Default channel, defaults to settings.REDIS_CHANNEL_EXTRACTION
        """
        self.redis_url = redis_url or settings.REDIS_URL
        self.channel = channel or settings.REDIS_CHANNEL_EXTRACTION
        self.client: Optional[redis.Redis] = None

    async def __aenter__(self) -> "RedisPublisher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _connect(self) -> redis.Redis:
        if self.client is None:
            self.client = redis.from_url(
                self.redis_url,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=False,
            )
        return self.client

    @retry(
        retry=retry_if_exception_type(redis.RedisError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def publish(self, message: Message, channel: Optional[str] = None) -> int:
        """
        Publish a message.

        Args:
            message: Pydantic model or dict
            channel: Override for the default channel

        Returns:
            Number of subscribers that received the message

        Raises:
            redis.RedisError: If publishing still fails after 3 attempts
        """
        target = channel or self.channel
        receivers = await self._connect().publish(target, encode_message(message))
        logger.debug("Message published", extra={"channel": target, "receivers": receivers})
        return receivers

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
