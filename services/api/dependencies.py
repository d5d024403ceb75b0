from functools import lru_cache

from apps.mapper.health import HealthService
from apps.mapper.transformer import VideoMapper
from utils.mq import RedisPublisher, RedisSubscriber


@lru_cache()
def get_video_mapper() -> VideoMapper:
    return VideoMapper()


@lru_cache()
def get_health_service() -> HealthService:
    return HealthService(consumer=RedisSubscriber(), producer=RedisPublisher())


async def close_health_service() -> None:
    """Close the healthcheck queue clients if they were ever created."""
    if get_health_service.cache_info().currsize:
        service = get_health_service()
        await service.consumer.close()
        await service.producer.close()
        get_health_service.cache_clear()
