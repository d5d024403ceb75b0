import logging
import sys

import orjson
import pytest

from utils.config import Settings
from utils.logging import JSONFormatter, setup_logging


def test_write_redis_url_falls_back_to_read_url():
    assert Settings(REDIS_URL="redis://read:6379/0").write_redis_url == "redis://read:6379/0"
    config = Settings(REDIS_URL="redis://read:6379/0", REDIS_WRITE_URL="redis://write:6379/0")
    assert config.write_redis_url == "redis://write:6379/0"


def test_json_formatter_merges_context():
    record = logging.LogRecord(
        "apps.mapper.consumer", logging.INFO, __file__, 10, "Mapped and sent for uuid: %s", ("abc",), None
    )
    record.transaction_id = "tid_123123"
    record.uuid = "abc"

    event = orjson.loads(JSONFormatter("next-video-mapper").format(record))

    assert event["msg"] == "Mapped and sent for uuid: abc"
    assert event["level"] == "info"
    assert event["service_name"] == "next-video-mapper"
    assert event["transaction_id"] == "tid_123123"
    assert event["uuid"] == "abc"
    assert "args" not in event


def test_json_formatter_renders_exceptions():
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    event = orjson.loads(JSONFormatter("next-video-mapper").format(record))
    assert "ValueError: boom" in event["exc_info"]


@pytest.mark.parametrize("kwargs", [{"format_type": "xml"}, {"output": "file"}])
def test_setup_logging_rejects_unknown_options(kwargs):
    with pytest.raises(ValueError):
        setup_logging(**kwargs)
