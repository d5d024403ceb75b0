"""
Production-ready Redis Streams wrapper with connection pooling and error handling.

Messages are stream entries with two fields: ``headers`` (orjson-encoded map)
and ``body`` (the raw message body). Both clients expose the probes used by
the healthchecks.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import orjson
import redis.asyncio as redis
from redis.exceptions import ResponseError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.config import settings
from utils.schemas import QueueMessage

logger = logging.getLogger(__name__)

MessageHandler = Callable[[QueueMessage], Awaitable[Any]]


class QueueCheckError(Exception):
    """Raised by a queue probe when the queue is unreachable or unhealthy."""


def _as_str(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def encode_message(message: QueueMessage) -> dict[str, bytes]:
    return {
        "headers": orjson.dumps(message.headers),
        "body": message.body.encode("utf-8"),
    }


def decode_message(fields: dict[Any, Any]) -> QueueMessage:
    """Build a QueueMessage from raw stream entry fields.

    Raises:
        orjson.JSONDecodeError: If the headers field is not valid JSON
        UnicodeDecodeError: If the body is not UTF-8
        KeyError: If the body field is missing
    """
    fields = {_as_str(k): v for k, v in fields.items()}
    raw_headers = fields.get("headers") or b"{}"
    headers = {str(k): str(v) for k, v in orjson.loads(raw_headers).items()}
    return QueueMessage(headers=headers, body=_as_str(fields["body"]))


class RedisPublisher:
    """Redis stream producer with connection pooling and retries."""

    def __init__(self, stream: Optional[str] = None, redis_url: Optional[str] = None) -> None:
        """Initialize Redis publisher.

        Args:
            stream: Stream to write to, defaults to settings.REDIS_WRITE_STREAM
            redis_url: Redis connection URL, defaults to settings.write_redis_url
        """
        self.stream = stream or settings.REDIS_WRITE_STREAM
        self.redis_url = redis_url or settings.write_redis_url
        self.client: Optional[redis.Redis] = None

    async def connect(self) -> None:
        """Establish Redis connection with connection pooling."""
        if self.client is None:
            self.client = redis.from_url(
                self.redis_url,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=False,  # Handle bytes for orjson
            )

    @retry(
        retry=retry_if_exception_type((redis.RedisError, redis.ConnectionError, redis.TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        reraise=True,
    )
    async def publish(self, message: QueueMessage) -> str:
        """Append a message to the stream with retry logic.

        Args:
            message: Message to send

        Returns:
            The stream entry id

        Raises:
            redis.RedisError: If publishing fails after retries
        """
        if self.client is None:
            await self.connect()

        entry_id = await self.client.xadd(
            self.stream,
            encode_message(message),
            maxlen=settings.REDIS_STREAM_MAXLEN,
            approximate=True,
        )
        return _as_str(entry_id)

    async def connectivity_check(self) -> str:
        """Check that the Redis instance behind the write stream answers.

        Raises:
            QueueCheckError: If Redis cannot be reached
        """
        if self.client is None:
            await self.connect()

        try:
            await self.client.ping()
        except redis.RedisError as e:
            raise QueueCheckError(f"Could not connect to write queue: {e}") from e
        return f"Write queue {self.stream} is reachable"

    async def close(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self.client:
            await self.client.aclose()
            self.client = None


class RedisSubscriber:
    """Redis stream consumer-group reader with async message handling."""

    def __init__(
        self,
        stream: Optional[str] = None,
        group: Optional[str] = None,
        consumer_name: Optional[str] = None,
        redis_url: Optional[str] = None,
    ) -> None:
        """Initialize Redis subscriber.

        Args:
            stream: Stream to read from, defaults to settings.REDIS_READ_STREAM
            group: Consumer group, defaults to settings.REDIS_CONSUMER_GROUP
            consumer_name: Consumer name inside the group
            redis_url: Redis connection URL, defaults to settings.REDIS_URL
        """
        self.stream = stream or settings.REDIS_READ_STREAM
        self.group = group or settings.REDIS_CONSUMER_GROUP
        self.consumer_name = consumer_name or settings.REDIS_CONSUMER_NAME
        self.redis_url = redis_url or settings.REDIS_URL
        self.client: Optional[redis.Redis] = None
        self._group_ready = False
        self._stop_event = asyncio.Event()

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.client is None:
            self.client = redis.from_url(
                self.redis_url,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=False,  # Handle bytes for orjson
            )

    async def ensure_group(self) -> None:
        """Create the consumer group (and the stream) if it doesn't exist yet."""
        if self.client is None:
            await self.connect()
        if self._group_ready:
            return

        try:
            await self.client.xgroup_create(self.stream, self.group, id="0", mkstream=True)
            logger.info("Created consumer group", extra={"stream": self.stream, "group": self.group})
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
        self._group_ready = True

    async def subscribe(self, handler: MessageHandler) -> None:
        """Read entries for this consumer and pass each one to the handler.

        Entries are acknowledged once handled, including entries that cannot
        be decoded.

        Args:
            handler: Async callback function(message)
        """
        await self.ensure_group()

        try:
            while not self._stop_event.is_set():
                try:
                    response = await self.client.xreadgroup(
                        self.group,
                        self.consumer_name,
                        {self.stream: ">"},
                        count=settings.REDIS_READ_COUNT,
                        block=settings.REDIS_BLOCK_MS,
                    )
                except redis.RedisError as e:
                    logger.error("Redis error during subscription", extra={"error": str(e)})
                    await asyncio.sleep(1)  # Brief pause before retry
                    continue

                for _stream, entries in response or []:
                    for entry_id, fields in entries:
                        try:
                            message = decode_message(fields)
                        except (orjson.JSONDecodeError, UnicodeDecodeError, KeyError, AttributeError) as e:
                            logger.warning(
                                "Failed to decode message, skipping",
                                extra={"error": str(e), "entry_id": _as_str(entry_id)},
                            )
                        else:
                            await handler(message)

                        await self.client.xack(self.stream, self.group, entry_id)

        except Exception as e:
            logger.error("Subscription loop failed", extra={"error": str(e)})
            raise

    async def connectivity_check(self) -> str:
        """Check that Redis answers and the read stream exists.

        Raises:
            QueueCheckError: If Redis cannot be reached or the stream is missing
        """
        if self.client is None:
            await self.connect()

        try:
            exists = await self.client.exists(self.stream)
        except redis.RedisError as e:
            raise QueueCheckError(f"Could not connect to read queue: {e}") from e

        if not exists:
            raise QueueCheckError(f"Stream {self.stream} was not found")
        return f"Read queue {self.stream} is reachable"

    async def monitor_check(self, lag_tolerance: int) -> str:
        """Check that the consumer group is not lagging behind the stream.

        Args:
            lag_tolerance: Maximum number of unread entries tolerated

        Raises:
            QueueCheckError: If the group lags or cannot be inspected
        """
        if self.client is None:
            await self.connect()

        try:
            groups = await self.client.xinfo_groups(self.stream)
        except redis.RedisError as e:
            raise QueueCheckError(f"Could not inspect read queue: {e}") from e

        for group in groups:
            info = {_as_str(k): _as_str(v) for k, v in group.items()}
            if info.get("name") != self.group:
                continue

            # lag is only reported by Redis >= 7; fall back to pending entries
            lag = info.get("lag")
            if lag is None:
                lag = info.get("pending", 0)
            if int(lag) > lag_tolerance:
                raise QueueCheckError(
                    f"Consumer group {self.group} is lagging by {lag} messages (tolerance {lag_tolerance})"
                )
            return f"Consumer group {self.group} lag is {lag}"

        raise QueueCheckError(f"Consumer group {self.group} was not found on {self.stream}")

    def stop(self) -> None:
        """Signal the subscription loop to stop."""
        self._stop_event.set()

    async def close(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self.client:
            await self.client.aclose()
            self.client = None
            self._group_ready = False
