"""WP Intake REST API — FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import os

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wpintake.api.deps import (
    close_job_runner,
    dispose_engine,
    get_engine,
    get_job_queue,
    init_job_runner,
    init_session_factory,
)
from wpintake.api.errors import register_error_handlers
from wpintake.api.middleware.request_id import RequestIDMiddleware
from wpintake.api.routers import items, jobs
from wpintake.core.database import create_all
from wpintake.core.logging import setup_logging

log = structlog.get_logger("wpintake.api")


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: init DB, wire the job runner, start workers. Shutdown: reverse."""
    factory = init_session_factory()
    engine = get_engine()
    if engine is not None and os.environ.get("WPINTAKE_CREATE_TABLES") == "1":
        await create_all(engine)

    init_job_runner(factory)
    queue = get_job_queue()
    await queue.start()
    log.info("api.started", concurrency=queue.concurrency)
    yield
    await queue.stop()
    await close_job_runner()
    await dispose_engine()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="WP Intake",
        docs_url="/api/v1/docs",
        openapi_url="/api/v1/openapi.json",
        lifespan=_lifespan,
    )

    register_error_handlers(app)

    cors_origins = os.environ.get("WPINTAKE_CORS_ORIGINS", "http://localhost:3000")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health", tags=["ops"])
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    app.include_router(items.router, prefix="/api/v1/items", tags=["items"])
    app.include_router(jobs.router, prefix="/api/v1/jobs", tags=["jobs"])

    return app
