"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings
from .database import init_db, close_db
from .routers import sites_router, monitor_router, incidents_router, status_router
from .services.scheduler import scheduler_service

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting SiteWatch")

    await init_db()
    logger.info("Database initialized")

    # Jobs are not persisted; rebuild them from the registry
    scheduler_service.start()
    await scheduler_service.initialize_schedules()

    yield

    scheduler_service.stop()
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="SiteWatch",
        description="Uptime monitoring - scheduled probes, incidents and alerts",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sites_router)
    app.include_router(monitor_router)
    app.include_router(incidents_router)
    app.include_router(status_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "scheduler_running": scheduler_service.running,
            "scheduled_sites": len(scheduler_service.scheduled_site_ids),
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
