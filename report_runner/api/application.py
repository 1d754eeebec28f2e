"""FastAPI application factory for the report runner service.

This module defines API application composition used by the runtime and tests.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from fastapi import FastAPI

from report_runner.config import AppSettings
from report_runner.db import DatabaseHealthPort
from report_runner.service import ReportService

from .routers import api_create_health_router, api_create_reports_router


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    report_service: ReportService,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[None]] | None = None,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        report_service: Report service facade used by report endpoints.
        lifespan: Optional lifespan context starting and stopping background work.

    Returns:
        FastAPI: Framework application instance.

    Raises:
        RuntimeError: Raised if application initialization fails.
    """
    application = FastAPI(title="Report Runner", lifespan=lifespan)

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        """Return a minimal service descriptor.

        Returns:
            dict[str, str]: Service name, status and environment.

        Raises:
            RuntimeError: Raised if route handler cannot produce a response.
        """

        return {
            "service": "report-runner",
            "status": "ready",
            "environment": settings.environment_name,
        }

    application.include_router(
        api_create_health_router(
            db_health_service=db_health_service,
            runtime_health_provider=report_service.service_runtime_health,
        )
    )
    application.include_router(api_create_reports_router(settings=settings, report_service=report_service))

    return application
