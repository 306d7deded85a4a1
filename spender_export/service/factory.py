"""Application factory for the reference job service."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from ..config import JobServiceSettings
from ..logging import configure_logging
from .ranking import CustomerSource
from .routes import router
from .state import ExportJobStore


def create_app(
    source: CustomerSource,
    settings: Optional[JobServiceSettings] = None,
    store: Optional[ExportJobStore] = None,
    logger=None,
) -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = settings or JobServiceSettings()
    logger = logger or configure_logging()

    app = FastAPI(
        title=settings.service_name,
        description="Batch export of customers ranked by total spend",
        version=settings.version,
    )

    app.state.settings = settings
    app.state.job_store = store or ExportJobStore(ttl_seconds=settings.session_ttl_seconds)
    app.state.customer_source = source
    app.state.logger = logger

    app.include_router(router)

    return app


__all__ = ["create_app"]
