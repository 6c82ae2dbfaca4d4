"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from merchant_auth.api.routes import install_error_handlers, router as auth_router
from merchant_auth.config import Settings, settings as default_settings
from merchant_auth.database.engine import build_engine, init_db
from merchant_auth.services.auth_service import build_auth_service

logging.basicConfig(
    level=logging.DEBUG if default_settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(settings: Settings = default_settings) -> FastAPI:
    """Build the application; the database and service live on ``app.state``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hook."""
        logger.info("Starting %s …", settings.app_name)
        engine, session_factory = build_engine(settings)
        await init_db(engine)
        logger.info("Database initialised")
        app.state.auth_service = build_auth_service(settings, session_factory)
        yield
        logger.info("Shutting down %s …", settings.app_name)
        await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Merchant signup and login gated by phone OTP verification",
        version="0.1.0",
        lifespan=lifespan,
    )

    install_error_handlers(app)
    app.include_router(auth_router, prefix="/auth")
    app.include_router(auth_router, prefix="/api/auth")

    @app.get("/health")
    async def health_check():
        """Simple liveness probe."""
        return {"status": "healthy", "app": settings.app_name}

    return app


app = create_app()
