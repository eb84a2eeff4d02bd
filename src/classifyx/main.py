"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from classifyx.api.routes import router
from classifyx.config import credentials_override, get_settings
from classifyx.jobs import JobPool
from classifyx.worker import MetadataWorker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting ClassifyX (tag classifiers=%s, color analyzer=%s, max_concurrent_jobs=%s, test_mode=%s)",
        ",".join(settings.tag_classifier_ids),
        settings.color_analyzer_id,
        settings.max_concurrent_jobs,
        settings.test_mode,
    )

    app.state.job_pool = JobPool(settings)
    app.state.worker = MetadataWorker(settings, credentials_override=credentials_override(settings))

    logger.info("ClassifyX ready")
    yield
    logger.info("ClassifyX shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="ClassifyX",
        description="Metadata extraction worker for remote image tag and color classifiers",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    settings = get_settings()
    uvicorn.run("classifyx.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
