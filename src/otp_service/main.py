"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from otp_service.api.router import router as otp_router
from otp_service.api.router import testing_router
from otp_service.config import Settings, settings
from otp_service.database.engine import build_engine
from otp_service.services.otp_store import create_otp_store

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the application; the OTP store lives for the app's lifespan."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hook."""
        logger.info("Starting %s …", app_settings.app_name)
        engine = build_engine(app_settings.database_url, echo=app_settings.debug)
        try:
            store = await create_otp_store(
                engine,
                purge_interval=timedelta(
                    seconds=app_settings.otp_purge_interval_seconds
                ),
                testing=app_settings.testing,
            )
            app.state.otp_store = store
            logger.info("OTP store ready")
            try:
                yield
            finally:
                logger.info("Shutting down %s …", app_settings.app_name)
                await store.shutdown()
        finally:
            await engine.dispose()

    app = FastAPI(
        title=app_settings.app_name,
        description="Issues and verifies short-lived one-time passcodes",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    app.include_router(otp_router)
    if app_settings.testing:
        logger.warning("Testing mode: non-consuming OTP lookup route is enabled")
        app.include_router(testing_router)

    @app.get("/health")
    async def health_check():
        """Simple liveness probe."""
        return {"status": "healthy", "app": app_settings.app_name}

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
