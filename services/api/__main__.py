"""
API Service Entry Point

Allows execution via: python -m services.api
"""

import uvicorn

from utils.config import settings

if __name__ == "__main__":
    uvicorn.run("services.api.main:app", host=settings.API_HOST, port=settings.API_PORT, log_config=None)
