"""
Nobre Hub - sales CRM backend (lead intake, round-robin assignment, permissions).
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from nobre_hub.config import get_settings
from nobre_hub.api.health import VERSION
from nobre_hub.api.router import api_router
from nobre_hub.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("nobre_hub")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


async def _seed_role_permissions() -> None:
    """Make sure every role has a permission row (never overwrites edits)."""
    try:
        from nobre_hub.database import async_session_factory
        from nobre_hub.services.permissions import seed_default_permissions

        async with async_session_factory() as db:
            written = await seed_default_permissions(db)
            await db.commit()
        if written:
            logger.info("Seeded %d missing role permission rows", written)
    except Exception as e:
        logger.warning("Failed to seed role permissions: %s", str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("Nobre Hub starting up (env=%s)", settings.app_env)

    if not settings.supabase_jwt_secret:
        logger.warning(
            "SUPABASE_JWT_SECRET not set - falling back to APP_SECRET_KEY "
            "for token verification."
        )

    # Initialize Sentry if configured
    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    await _seed_role_permissions()

    yield

    logger.info("Nobre Hub shutting down")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    # Configure structured JSON logging with correlation IDs
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="Nobre Hub",
        description="Sales CRM backend - lead intake, round-robin assignment, permissions",
        version=VERSION,
        lifespan=lifespan,
    )

    extra_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]

    # CORS - allow dashboard and landing page origins
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
            settings.app_base_url,
            *extra_origins,
        ],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    # Include all routes
    application.include_router(api_router)

    return application


app = create_app()
