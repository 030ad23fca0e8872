"""MedGate API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Rate-limit store, gatekeeper and user directory are owned by the app instance
      (app.state), created in create_app — never module-level singletons
    - CORS gate is the outermost middleware: preflight never reaches the pipeline
    - Unexpected exceptions are rendered inside the CORS gate, so 500s carry CORS headers
    - Global error handlers map every failure to the single ErrorRecord response shape

Design Decisions:
    - create_app(settings) factory: each test builds an isolated app and limiter
    - Lifespan over @app.on_event: configures logging and runs the expired-window sweeper
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from medgate.api.error_handlers import classified_error_handler, register_error_handlers
from medgate.api.middleware import (
    AccessLogMiddleware,
    CORSGateMiddleware,
    UnhandledErrorMiddleware,
)
from medgate.api.routes import health, users
from medgate.config import Settings, get_settings
from medgate.core.rate_limit import FixedWindowRateLimiter, RateLimitPolicy
from medgate.infrastructure.observability import EventLogger, setup_logging
from medgate.infrastructure.user_directory import UserDirectory
from medgate.services.gatekeeper import Gatekeeper, epoch_ms

logger = logging.getLogger(__name__)


async def sweep_expired_windows(gatekeeper: Gatekeeper, interval_seconds: float) -> None:
    """Periodically drop rate-limit entries whose window has passed."""
    while True:
        await asyncio.sleep(interval_seconds)
        dropped = gatekeeper.limiter.purge_expired(gatekeeper.clock())
        if dropped:
            logger.debug(f"Purged {dropped} expired rate-limit entries")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build a fully wired application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle."""
        setup_logging(settings.log_level, settings.log_format)
        sweeper = asyncio.create_task(sweep_expired_windows(
            app.state.gatekeeper, settings.rate_limit_sweep_interval_seconds,
        ))
        logger.info(f"{settings.app_name} started ({settings.environment})")
        yield
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        logger.info(f"{settings.app_name} shutting down")

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)

    events = EventLogger()
    app.state.settings = settings
    app.state.events = events
    app.state.gatekeeper = Gatekeeper(
        FixedWindowRateLimiter(),
        RateLimitPolicy(settings.rate_limit_max_requests, settings.rate_limit_window_ms),
        events,
        rate_limit_enabled=settings.rate_limit_enabled,
        max_depth=settings.sanitize_max_depth,
        clock=epoch_ms,
    )
    app.state.users = UserDirectory()

    # Last added = outermost
    app.add_middleware(UnhandledErrorMiddleware, error_handler=classified_error_handler)
    app.add_middleware(AccessLogMiddleware, events=events)
    app.add_middleware(CORSGateMiddleware, allow_origins=settings.cors_origins)

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    return app


app = create_app()
