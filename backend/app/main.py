"""
FastAPI application entry point.

Uses structured logging from authcore.logging and validates security
configuration before accepting traffic.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authcore.config import Settings, get_settings
from authcore.db import db
from authcore.guard import AccessGuard
from authcore.logging import RequestLoggingMiddleware, configure_logging, get_logger
from authcore.security import SecurityConfigError, validate_security_config
from authcore.tokens import CredentialVerifier, TokenIssuer

from .error_handlers import register_exception_handlers
from .middleware.request_id import RequestIDMiddleware
from .routers import auth as auth_router
from .routers import users as users_router

logger = get_logger("api")


def validate_security_on_startup(settings: Settings) -> None:
    """
    Validate security configuration before starting the app.

    Errors are fatal unless DEBUG is on outside production.
    """
    allow_security_bypass = settings.debug and not settings.is_production
    try:
        validate_security_config(settings)
        logger.info("security_validation_passed")
    except SecurityConfigError as e:
        for error in e.errors:
            logger.error("security_config_error", error=error)
        if not allow_security_bypass:
            logger.error(
                "security_validation_failed_fatal",
                message="Set valid secrets or use ENV=development with DEBUG=true to bypass.",
            )
            raise
        logger.warning(
            "security_validation_skipped",
            message="Security validation bypassed (DEBUG=true and ENV!=production)",
        )


def init_auth_components(app: FastAPI, settings: Settings) -> None:
    """
    Build the token issuer, verifier and guard once per process.

    Raises:
        ConfigurationError: If the signing secret is missing.
    """
    app.state.token_issuer = TokenIssuer(settings)
    app.state.access_guard = AccessGuard(CredentialVerifier(settings))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(level="DEBUG" if settings.debug else "INFO")

    # API is accessible at /api/v1/*
    api_prefix = f"{settings.api_prefix}/v1"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("app_startup", app_name=settings.app_name)
        validate_security_on_startup(settings)
        init_auth_components(app, settings)

        db.initialize(settings.database_url)
        db.create_all_tables()
        logger.info("database_initialized")

        yield

        logger.info("app_shutdown")
        db.reset()

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.state.settings = settings

    # Credentials are required for the refresh cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "Origin",
            "X-Requested-With",
            "X-Request-ID",
        ],
        expose_headers=["X-Request-ID"],
    )

    # Request ID must wrap request logging so every log line carries it
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    def health_check():
        """Liveness probe. Returns no infrastructure details."""
        return {"status": "ok"}

    @app.get("/health/ready", tags=["health"])
    def readiness_check():
        """Readiness probe: 503 until the database answers."""
        result = db.health_check()
        if not result["healthy"]:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", "checks": {"database": False}},
            )
        return {"status": "ready", "checks": {"database": True}}

    app.include_router(auth_router.router, prefix=api_prefix)
    app.include_router(users_router.router, prefix=api_prefix)

    return app


app = create_app()
