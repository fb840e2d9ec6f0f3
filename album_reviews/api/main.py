"""
FastAPI application entry point for the Album Reviews API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from album_reviews.api.config import (
    get_api_host,
    get_api_port,
    get_database_path,
    get_log_level,
    get_watch_workers,
)
from album_reviews.api.routers import albums, reviews, realtime, system
from album_reviews.database.connection import DatabaseManager
from album_reviews.realtime.hub import ChangeHub
from album_reviews.utils.logging_config import configure_api_logging

logger = logging.getLogger(__name__)


def create_app(db_manager: DatabaseManager | None = None) -> FastAPI:
    """
    Build the application.
    
    Args:
        db_manager: Store handle to use. When None, one is created from
            DATABASE_URL at startup and disposed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager = db_manager or DatabaseManager(db_path=get_database_path())
        manager.create_tables()
        hub = ChangeHub(manager, max_workers=get_watch_workers())
        app.state.db_manager = manager
        app.state.change_hub = hub
        logger.info(f"Album Reviews API started on {manager.database_url}")
        try:
            yield
        finally:
            hub.close()
            if db_manager is None:
                manager.close()

    app = FastAPI(
        title="Album Reviews API",
        description="Browse albums, submit reviews and watch rating aggregates live",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(albums.router)
    app.include_router(reviews.router)
    app.include_router(realtime.router)
    app.include_router(system.router)

    @app.get("/")
    def root():
        """Root endpoint."""
        return {
            "message": "Album Reviews API",
            "docs": "/docs",
            "health": "/api/health",
        }

    return app


app = create_app()


def main():
    """Run the API with uvicorn."""
    import uvicorn

    configure_api_logging(level=get_log_level())
    uvicorn.run(app, host=get_api_host(), port=get_api_port())


if __name__ == "__main__":
    main()
