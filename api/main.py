"""FastAPI application factory and uvicorn entrypoint for the users API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.config import Settings
from core.db import Database
from core.errors import register_error_handlers
from core.logger import AccessLogMiddleware, configure_logging
from users import router as users_router

logger = logging.getLogger("users_api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Open the DB pool once per process, unless one was injected.
    owns_database = app.state.database is None
    if owns_database:
        app.state.database = await Database.connect(app.state.settings)
    try:
        yield
    finally:
        if owns_database:
            await app.state.database.close()
            app.state.database = None


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    app = FastAPI(title="Users API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database

    register_error_handlers(app)
    app.add_middleware(AccessLogMiddleware)

    app.include_router(users_router.router, tags=["users"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/")
    def root() -> dict:
        return {"message": "users api"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings: Settings = app.state.settings
    logger.info(f"Starting Users API on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)
