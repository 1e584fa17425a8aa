"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .routers import monitors_router, stream_router
from .services.checker import CheckerService
from .services.publisher import UpdatePublisher
from .services.scheduler import SchedulerService
from .services.state_store import StateStore, create_state_store, seed_store

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    store: Optional[StateStore] = None,
    checker: Optional[CheckerService] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``store`` and ``checker`` default to the ones selected by settings;
    passing them in lets tests run the app against fakes.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        state_store = store or create_state_store()
        await state_store.open()
        await seed_store(state_store, settings.seed_file)

        publisher = UpdatePublisher(state_store)
        scheduler = SchedulerService(state_store, publisher, checker=checker)

        app.state.store = state_store
        app.state.publisher = publisher
        app.state.scheduler = scheduler

        if start_scheduler:
            scheduler.start()
        logger.info(f"Monitor service started ({'in-memory' if settings.in_memory else 'database'} store)")

        yield

        # Shutdown
        scheduler.stop()
        await state_store.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="uptimewatch",
        description="Monitor HTTP services and ping-reachable hosts",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware for dashboards served elsewhere
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(monitors_router)
    app.include_router(stream_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "scheduler_running": app.state.scheduler.running,
            "subscribers": app.state.publisher.subscriber_count,
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
