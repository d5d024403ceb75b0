"""
Backend API Service - FastAPI Application

Responsibilities:
- Map native video JSON on demand, without going through the queues
- Expose healthcheck, good-to-go, ping and build-info endpoints

Endpoints:
- POST /map - Map a native video document (400 with the error text on failure)
- GET /__health - Queue healthchecks, always HTTP 200
- GET /__gtg - Good-to-go, 200 or 503
- GET /__ping - Liveness
- GET /__build-info - Application name, version and environment

Usage:
    python -m services.api
    uvicorn services.api.main:app --host 0.0.0.0 --port 8080
"""
