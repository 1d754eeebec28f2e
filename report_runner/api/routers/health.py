"""Health endpoint router reporting ledger connectivity and runtime worker state."""

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from report_runner.db import DatabaseHealthPort


def api_create_health_router(
    db_health_service: DatabaseHealthPort,
    runtime_health_provider: Callable[[], dict[str, object]] | None = None,
) -> APIRouter:
    """Create health-check router combining ledger and runtime state.

    The endpoint answers 503 only when the ledger is unreachable; stopped
    background loops are reported but do not degrade the status.

    Args:
        db_health_service: DB-layer health service interface.
        runtime_health_provider: Optional callable returning queue, cache and loop state.

    Returns:
        APIRouter: Router exposing `/health` endpoint.

    Raises:
        ValueError: Raised when db_health_service is invalid.
    """

    if db_health_service is None:
        raise ValueError("db_health_service must not be None")

    router = APIRouter(tags=["health"])

    @router.get("/health")
    def api_health_status() -> JSONResponse:
        payload: dict[str, Any] = {
            "app": "up",
            "target": db_health_service.db_connection_label(),
            "runtime": runtime_health_provider() if runtime_health_provider is not None else None,
        }
        try:
            ledger_health = db_health_service.db_check_health()
        except ConnectionError as error:
            payload.update({"status": "degraded", "database": "down", "detail": str(error)})
            return JSONResponse(content=payload, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

        payload.update({"status": "ok", "database": ledger_health.status, "detail": ledger_health.detail})
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router
