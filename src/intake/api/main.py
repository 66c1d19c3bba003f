"""FastAPI application factory."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlmodel import SQLModel

from intake.db.engine import get_engine
from intake.api.routes import records, settings as settings_routes, sync as sync_routes


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    engine = get_engine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables on startup (idempotent)
        SQLModel.metadata.create_all(engine)
        yield

    app = FastAPI(
        title="Intake API",
        description="Event intake coordination with platform sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(records.router, tags=["records"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])
    app.include_router(settings_routes.router, prefix="/settings", tags=["settings"])

    return app


# Module-level app instance for uvicorn
app = create_app()
