import orjson
import pytest
import redis.asyncio as redis

from apps.mapper.consumer import MapperConsumer, build_outbound_headers, is_json_content
from utils.schemas import PublicationEvent, QueueMessage

from tests.conftest import MESSAGE_TIMESTAMP, TRANSACTION_ID


@pytest.fixture
def publisher(mocker):
    publisher = mocker.MagicMock()
    publisher.stream = "CmsPublicationEvents"
    publisher.publish = mocker.AsyncMock(return_value="1-0")
    return publisher


@pytest.fixture
def consumer(mapper, publisher, mocker):
    subscriber = mocker.MagicMock()
    subscriber.stream = "NativeCmsPublicationEvents"
    return MapperConsumer(mapper=mapper, subscriber=subscriber, publisher=publisher)


@pytest.mark.asyncio
async def test_handle_message_publishes_mapped_video(consumer, publisher, headers, video_input, video_output):
    handled = await consumer.handle_message(QueueMessage(headers=headers, body=video_input))

    assert handled is True
    publisher.publish.assert_awaited_once()
    sent = publisher.publish.await_args.args[0]

    assert sent.headers["X-Request-Id"] == TRANSACTION_ID
    assert sent.headers["Message-Timestamp"] == MESSAGE_TIMESTAMP
    assert sent.headers["Message-Type"] == "cms-content-published"
    assert sent.headers["Origin-System-Id"] == "http://cmdb.ft.com/systems/next-video-editor"
    assert sent.headers["Content-Type"] == "application/json"
    assert sent.headers["Message-Id"]
    assert PublicationEvent.from_json(sent.body) == PublicationEvent.from_json(video_output)
    assert sent.body == orjson.dumps(orjson.loads(video_output)).decode("utf-8")


@pytest.mark.asyncio
async def test_generated_timestamp_is_forwarded(consumer, publisher, headers):
    del headers["Message-Timestamp"]
    body = orjson.dumps({"id": "a40808ac-1417-4c48-9781-1dd2d8c8c6dc"}).decode()

    assert await consumer.handle_message(QueueMessage(headers=headers, body=body)) is True

    sent = publisher.publish.await_args.args[0]
    assert sent.headers["Message-Timestamp"] == orjson.loads(sent.body)["lastModified"]


@pytest.mark.asyncio
async def test_other_origin_is_ignored(consumer, publisher, headers, video_input):
    headers["Origin-System-Id"] = "http://cmdb.ft.com/systems/methode-web-pub"

    assert await consumer.handle_message(QueueMessage(headers=headers, body=video_input)) is False
    publisher.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_non_json_content_is_ignored(consumer, publisher, headers, video_input):
    headers["Content-Type"] = "application/vnd.ft-upp-audio+json"

    assert await consumer.handle_message(QueueMessage(headers=headers, body=video_input)) is False
    publisher.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_mapping_error_is_not_published(consumer, publisher, headers, caplog):
    handled = await consumer.handle_message(QueueMessage(headers=headers, body="{not json"))

    assert handled is False
    publisher.publish.assert_not_awaited()
    assert "Error consuming message" in caplog.text


@pytest.mark.asyncio
async def test_publish_failure_is_logged(consumer, publisher, headers, video_input, caplog):
    publisher.publish.side_effect = redis.ConnectionError("connection refused")

    handled = await consumer.handle_message(QueueMessage(headers=headers, body=video_input))

    assert handled is False
    assert "Error sending transformed message to queue" in caplog.text


@pytest.mark.asyncio
async def test_run_once_signals_shutdown(mapper, publisher, headers, video_input, mocker):
    consumer = MapperConsumer(mapper=mapper, subscriber=mocker.MagicMock(), publisher=publisher, run_once=True)

    await consumer.handle_message(QueueMessage(headers=headers, body=video_input))

    assert consumer.shutdown_event.is_set()


@pytest.mark.parametrize(
    "content_type,expected",
    [
        (None, True),
        ("application/json", True),
        ("application/json; charset=utf-8", True),
        ("text/plain", False),
    ],
)
def test_is_json_content(content_type, expected):
    headers = {} if content_type is None else {"Content-Type": content_type}
    assert is_json_content(headers) is expected


def test_outbound_headers_have_unique_message_ids():
    first = build_outbound_headers(TRANSACTION_ID, MESSAGE_TIMESTAMP)
    second = build_outbound_headers(TRANSACTION_ID, MESSAGE_TIMESTAMP)
    assert first["Message-Id"] != second["Message-Id"]
