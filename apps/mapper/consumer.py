"""
Mapper Consumer - Redis Stream Event Handler

Consumes native video messages from the read stream, maps them onto
publication events and writes them to the write stream.

Features:
- Redis Streams consumer group via production wrapper
- Origin system and content type filtering
- Graceful shutdown handling
- Structured logging

Usage:
    # Consumer mode (default)
    python -m apps.mapper

    # For development/testing
    RUN_ONCE=true python -m apps.mapper
"""

import asyncio
import logging
import os
import signal
import sys
import uuid
from typing import Optional

import redis.asyncio as redis

from apps.mapper.transformer import (
    MESSAGE_TIMESTAMP_HEADER,
    TRANSACTION_ID_HEADER,
    MappingError,
    VideoMapper,
)
from utils.config import settings
from utils.logging import setup_logging
from utils.mq import RedisPublisher, RedisSubscriber
from utils.schemas import QueueMessage

logger = logging.getLogger(__name__)

VIDEO_SYSTEM_ORIGIN = "http://cmdb.ft.com/systems/next-video-editor"
ORIGIN_SYSTEM_HEADER = "Origin-System-Id"
CONTENT_TYPE_HEADER = "Content-Type"
JSON_CONTENT_TYPE = "application/json"
PUBLISHED_MESSAGE_TYPE = "cms-content-published"


def is_json_content(headers: dict[str, str]) -> bool:
    """True when the message has no content type or a plain JSON one."""
    content_type = headers.get(CONTENT_TYPE_HEADER)
    if not content_type:
        return True
    return content_type.split(";", 1)[0].strip().lower() == JSON_CONTENT_TYPE


def build_outbound_headers(tid: str, last_modified: str) -> dict[str, str]:
    return {
        TRANSACTION_ID_HEADER: tid,
        MESSAGE_TIMESTAMP_HEADER: last_modified,
        "Message-Id": str(uuid.uuid4()),
        "Message-Type": PUBLISHED_MESSAGE_TYPE,
        CONTENT_TYPE_HEADER: JSON_CONTENT_TYPE,
        ORIGIN_SYSTEM_HEADER: VIDEO_SYSTEM_ORIGIN,
    }


class MapperConsumer:
    """
    Consumer mapping native video messages from Redis Streams.

    Handles:
    - Redis subscription management
    - Message filtering, mapping and republishing
    - Signal handling for graceful shutdown
    """

    def __init__(
        self,
        mapper: Optional[VideoMapper] = None,
        subscriber: Optional[RedisSubscriber] = None,
        publisher: Optional[RedisPublisher] = None,
        run_once: bool = False,
    ) -> None:
        """
        Initialize mapper consumer.

        Args:
            mapper: Video mapper, a new one by default
            subscriber: Read stream client, built from settings by default
            publisher: Write stream client, built from settings by default
            run_once: If True, process one message and exit (for testing)
        """
        self.mapper = mapper or VideoMapper()
        self.subscriber = subscriber or RedisSubscriber()
        self.publisher = publisher or RedisPublisher()
        self.run_once = run_once
        self.shutdown_event = asyncio.Event()
        self._processed_count = 0

        logger.info(
            "MapperConsumer initialized",
            extra={
                "run_once": run_once,
                "read_stream": self.subscriber.stream,
                "write_stream": self.publisher.stream,
            },
        )

    async def handle_message(self, message: QueueMessage) -> bool:
        """
        Map one native video message and publish the result.

        Args:
            message: Message read from the stream

        Returns:
            True if a mapped message was published
        """
        tid = message.headers.get(TRANSACTION_ID_HEADER, "")
        origin = message.headers.get(ORIGIN_SYSTEM_HEADER)

        if origin != VIDEO_SYSTEM_ORIGIN:
            logger.info(
                "Ignoring message with different Origin-System-Id %s",
                origin,
                extra={"event": "mapping", "transaction_id": tid},
            )
            return False

        if not is_json_content(message.headers):
            logger.info(
                "Ignoring message with Content-Type %s",
                message.headers.get(CONTENT_TYPE_HEADER),
                extra={"event": "mapping", "transaction_id": tid},
            )
            return False

        try:
            result = self.mapper.transform(message)
        except MappingError as e:
            logger.error(
                "Error consuming message",
                extra={"event": "error", "transaction_id": tid, "uuid": e.content_uuid, "error": str(e)},
            )
            return False

        outbound = QueueMessage(
            headers=build_outbound_headers(tid, result.last_modified),
            body=result.body.decode("utf-8"),
        )

        try:
            await self.publisher.publish(outbound)
        except redis.RedisError as e:
            logger.error(
                "Error sending transformed message to queue",
                extra={"event": "error", "transaction_id": tid, "uuid": result.content_uuid, "error": str(e)},
                exc_info=True,
            )
            return False

        self._processed_count += 1
        logger.info(
            "Mapped and sent for uuid: %s",
            result.content_uuid,
            extra={"event": "mapping", "transaction_id": tid, "uuid": result.content_uuid},
        )

        if self.run_once:
            logger.info("RUN_ONCE mode: signaling shutdown after processing message")
            self.shutdown_event.set()

        return True

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def start(self) -> None:
        """
        Start consumer and process messages until shutdown signal.

        Connects to Redis, joins the consumer group and processes messages
        continuously until graceful shutdown is requested.
        """
        self.setup_signal_handlers()

        logger.info("Starting mapper consumer", extra={"event": "consume_queue"})

        try:
            await self.subscriber.ensure_group()
            await self.publisher.connect()
            logger.info(
                "Connected to Redis and joined consumer group",
                extra={"stream": self.subscriber.stream, "group": self.subscriber.group},
            )

            subscription_task = asyncio.create_task(
                self.subscriber.subscribe(self.handle_message)
            )

            logger.info("Consumer started, waiting for messages...")

            # Wait for shutdown signal or subscription completion
            done, pending = await asyncio.wait(
                [
                    asyncio.create_task(self.shutdown_event.wait()),
                    subscription_task,
                ],
                return_when=asyncio.FIRST_COMPLETED,
            )

            # Cancel pending tasks
            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

            # Surface a crashed subscription loop
            if subscription_task in done:
                subscription_task.result()

            logger.info(
                "Consumer shutdown complete",
                extra={"processed_messages": self._processed_count},
            )

        except Exception as e:
            logger.error("Consumer failed", extra={"error": str(e)}, exc_info=True)
            raise

        finally:
            self.subscriber.stop()
            await self.subscriber.close()
            await self.publisher.close()
            logger.info("Redis connections closed")


async def main() -> None:
    """Main entry point for mapper consumer."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    run_once = os.getenv("RUN_ONCE", "false").lower() in ("true", "1", "yes")

    consumer = MapperConsumer(run_once=run_once)

    try:
        await consumer.start()
    except Exception as e:
        logger.error("Consumer failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
