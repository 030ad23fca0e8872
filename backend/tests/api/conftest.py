"""API test fixtures — an isolated app per test, driven through httpx.

Invariants:
    - Every test builds its own app via create_app: fresh limiter, fresh user directory
    - Rate limit is small (5 per minute) so limit tests stay fast
    - Demo identity headers (X-User-Id / X-User-Role) trusted
"""

import pytest
from httpx import ASGITransport, AsyncClient

from medgate.config import Settings
from medgate.main import create_app

ORIGIN = "https://portal.clinic.example"
RATE_LIMIT = 5  # keep in sync with test_users_routes.RATE_LIMIT


@pytest.fixture
def settings():
    return Settings(
        environment="test",
        cors_origins=[ORIGIN],
        rate_limit_max_requests=RATE_LIMIT,
        rate_limit_window_ms=60_000,
        log_format="text",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as ac:
        yield ac
