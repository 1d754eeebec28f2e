"""Tests for API health endpoint behavior.

These tests validate deterministic response behavior for healthy and
database-unavailable states.
"""

from fastapi.testclient import TestClient

from report_runner.api.application import create_api_application
from report_runner.config import AppSettings
from report_runner.domain import HealthStatus


class _HealthyDatabaseService:
    """Test double that simulates a healthy database target."""

    def db_connection_label(self) -> str:
        """Return deterministic target label.

        Returns:
            str: Health target label.

        Raises:
            RuntimeError: Never raised by this test double.
        """

        return "sqlite://test"

    def db_check_health(self) -> HealthStatus:
        """Return healthy database result.

        Returns:
            HealthStatus: Healthy DB response.

        Raises:
            ConnectionError: Never raised by this test double.
        """

        return HealthStatus(status="ok", detail="database connectivity verified")


class _FailingDatabaseService:
    """Test double that simulates a database connectivity failure."""

    def db_connection_label(self) -> str:
        return "sqlite://test"

    def db_check_health(self) -> HealthStatus:
        """Raise deterministic connection error.

        Returns:
            HealthStatus: This method does not return.

        Raises:
            ConnectionError: Always raised by this test double.
        """

        raise ConnectionError("database connectivity check failed")


def _build_settings() -> AppSettings:
    return AppSettings(environment_name="test", database_url="sqlite:///./unused.db")


def test_api_health_returns_success_when_database_is_available(build_runtime) -> None:
    """Return HTTP 200 with database and loop state when DB service reports success.

    Returns:
        None: Assertions validate response behavior.

    Raises:
        AssertionError: Raised when response does not match expected payload.
    """

    runtime = build_runtime({})
    application = create_api_application(_build_settings(), _HealthyDatabaseService(), runtime.service)
    client = TestClient(application)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["app"] == "up"
    assert response.json()["database"] == "ok"
    runtime_payload = response.json()["runtime"]
    assert runtime_payload["queued"] == 0
    assert runtime_payload["in_flight"] == 0
    assert runtime_payload["max_concurrent"] == 1
    assert [loop["loop"] for loop in runtime_payload["loops"]] == ["dispatcher", "retention"]
    assert all(loop["running"] is False for loop in runtime_payload["loops"])


def test_api_health_returns_service_unavailable_when_database_is_down(build_runtime) -> None:
    """Return HTTP 503 and degraded payload when DB service reports failure.

    Returns:
        None: Assertions validate response behavior.

    Raises:
        AssertionError: Raised when response does not match expected payload.
    """

    runtime = build_runtime({})
    application = create_api_application(_build_settings(), _FailingDatabaseService(), runtime.service)
    client = TestClient(application)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["app"] == "up"
    assert response.json()["database"] == "down"


def test_api_root_describes_service(build_runtime) -> None:
    runtime = build_runtime({})
    client = TestClient(create_api_application(_build_settings(), _HealthyDatabaseService(), runtime.service))

    response = client.get("/")

    assert response.json() == {"service": "report-runner", "status": "ready", "environment": "test"}
