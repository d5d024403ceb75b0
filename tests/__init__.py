"""
Tests Package - Unit and API Tests

Test structure:
- tests/unit/ - Fast, isolated unit tests (mapper, uuid derivation, queues, healthchecks)
- tests/api/ - FastAPI endpoint tests through TestClient
- tests/resources/ - Native video input and expected publication event
- tests/conftest.py - Shared pytest fixtures
"""
