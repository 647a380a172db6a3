"""Main FastAPI application hosting the probe scheduler."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .database import init_db, close_db
from .routers import status_router
from .services.certificate_sweep import certificate_sweep
from .services.scheduler import scheduler_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting pingwatch")

    await init_db()
    logger.info("Database initialized")

    scheduler_service.startup()
    await scheduler_service.initialize_all()
    scheduler_service.schedule_certificate_sweep(certificate_sweep, settings.ssl_check_interval_hours)

    yield

    scheduler_service.shutdown()
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="pingwatch",
        description="Scheduled HTTP(S) uptime probing with auto-stop and certificate expiry checks",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(status_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "live_monitors": len(scheduler_service.live_monitor_ids()),
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
