"""
Pytest test suite for the storefront payment-status backend.

Test categories:
- Unit tests: normalizer, broadcaster, sinks and services against in-memory SQLite
- API tests: the full FastAPI app through an httpx ASGI client
"""
