from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from apps.mapper.health import HealthService
from services.api.dependencies import get_health_service
from utils.config import settings
from utils.schemas import HealthReport

router = APIRouter()

NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@router.get("/__health", response_model=HealthReport)
async def health(service: HealthService = Depends(get_health_service)):
    # always 200: failing checks are reported in the body
    return await service.health()


@router.get("/__gtg", response_class=PlainTextResponse)
async def good_to_go(service: HealthService = Depends(get_health_service)):
    status = await service.gtg()
    if not status.goodToGo:
        return PlainTextResponse(status.message, status_code=503, headers=NO_CACHE)
    return PlainTextResponse("OK", headers=NO_CACHE)


@router.get("/__ping", response_class=PlainTextResponse)
def ping():
    return "pong"


@router.get("/__build-info")
def build_info():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }
