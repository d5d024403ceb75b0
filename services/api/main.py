from contextlib import asynccontextmanager

from fastapi import FastAPI

from services.api.dependencies import close_health_service
from services.api.routers import health, mapper
from utils.config import settings
from utils.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    yield
    await close_health_service()


app = FastAPI(title="Next Video Mapper", version=settings.APP_VERSION, lifespan=lifespan)

app.include_router(mapper.router)
app.include_router(health.router)
