import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from apps.mapper.health import HealthService
from apps.mapper.transformer import VideoMapper
from services.api.dependencies import get_health_service, get_video_mapper
from services.api.main import app
from utils.mq import QueueCheckError

RESOURCES = Path(__file__).parent / "resources"

TRANSACTION_ID = "tid_123123"
MESSAGE_TIMESTAMP = "2017-04-13T10:27:32.353Z"


def read_resource(name: str) -> str:
    return (RESOURCES / name).read_text(encoding="utf-8")


class FakeQueue:
    """Stand-in for the stream clients' healthcheck probes."""

    def __init__(self, reachable=True, lagging=False, delay=0.0, name="queue"):
        self.reachable = reachable
        self.lagging = lagging
        self.delay = delay
        self.name = name
        self.cancelled = False

    async def connectivity_check(self) -> str:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if not self.reachable:
            raise QueueCheckError("error connecting to the queue")
        return f"{self.name} is reachable"

    async def monitor_check(self, lag_tolerance: int) -> str:
        if not self.reachable:
            raise QueueCheckError("error connecting to the queue")
        if self.lagging:
            raise QueueCheckError(f"consumer group is lagging by more than {lag_tolerance} messages")
        return f"{self.name} is not lagging"


@pytest.fixture
def video_input() -> str:
    return read_resource("video-input.json")


@pytest.fixture
def video_output() -> str:
    return read_resource("video-output.json")


@pytest.fixture
def headers() -> dict:
    return {
        "X-Request-Id": TRANSACTION_ID,
        "Message-Timestamp": MESSAGE_TIMESTAMP,
        "Origin-System-Id": "http://cmdb.ft.com/systems/next-video-editor",
        "Content-Type": "application/json",
    }


@pytest.fixture
def mapper() -> VideoMapper:
    return VideoMapper()


@pytest.fixture
def make_health_service():
    def _make(read_queue=None, write_queue=None, lag_tolerance=120, timeout=1.0):
        return HealthService(
            read_queue or FakeQueue(name="read queue"),
            write_queue or FakeQueue(name="write queue"),
            lag_tolerance=lag_tolerance,
            timeout=timeout,
            panic_guide="https://runbooks.in.ft.com/upp-next-video-mapper",
        )

    return _make


@pytest.fixture
def health_service(make_health_service) -> HealthService:
    return make_health_service()


@pytest.fixture
def client(health_service, mapper):
    app.dependency_overrides[get_health_service] = lambda: health_service
    app.dependency_overrides[get_video_mapper] = lambda: mapper
    yield TestClient(app)
    app.dependency_overrides.clear()
