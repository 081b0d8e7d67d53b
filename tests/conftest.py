"""Pytest configuration and fixtures for test suite.

Provides:
- Settings pointed at a temporary workspace
- Mock HTTP transports for simulated service fleets
- A report factory for renderer and recommendation tests
"""

from datetime import UTC, datetime

import httpx
import pytest
import yaml

from servicepulse.lib.config import Settings
from servicepulse.models.report import (
    AggregateReport,
    OverallStatus,
    ProbeResult,
    ServiceStatus,
)


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "slow: marks tests that wait on real probe timing")


def _write_registry(path, services: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump({"services": services}))


def _fleet_transport(healthy_ports: set[int]) -> httpx.MockTransport:
    """Transport where only ``healthy_ports`` answer 200; the rest answer 503."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.port in healthy_ports:
            return httpx.Response(200, json={"status": "ok"})
        return httpx.Response(503, json={"status": "starting"})

    return httpx.MockTransport(handler)


@pytest.fixture
def write_registry():
    """Write a registry YAML: ``write_registry(path, {name: entry})``."""
    return _write_registry


@pytest.fixture
def fleet_transport():
    """Build a transport where only the given ports answer 200."""
    return _fleet_transport


@pytest.fixture
def workspace(tmp_path):
    """Temporary project layout with workflows dir and pyproject.toml."""
    workflows = tmp_path / ".github" / "workflows"
    workflows.mkdir(parents=True)
    for name in ("service-validation.yml", "service-validation-gateway.yml", "lint.yml"):
        (workflows / name).write_text("on: push\n")

    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "demo-app"\nversion = "1.2.3"\n'
        'dependencies = ["httpx>=0.27", "fastapi", "health-checks==1.0"]\n'
        '[project.scripts]\ndemo = "demo:main"\n'
    )
    return tmp_path


@pytest.fixture
def settings(workspace):
    """Settings with fast probe timing and all paths inside the workspace."""
    return Settings(
        registry_path=str(workspace / "config" / "services.yaml"),
        report_dir=str(workspace / "reports" / "service-status"),
        latest_dir=str(workspace / "latest"),
        probe_timeout_ms=200,
        poll_interval_ms=20,
        workflows_dir=str(workspace / ".github" / "workflows"),
        project_manifest=str(workspace / "pyproject.toml"),
    )


@pytest.fixture
def make_report():
    """Factory for finalized reports with sensible defaults."""

    def _make(**overrides) -> AggregateReport:
        checked_at = datetime(2026, 10, 18, 9, 30, tzinfo=UTC)
        values = {
            "timestamp": checked_at,
            "total_services": 2,
            "healthy_count": 1,
            "failed_count": 1,
            "warning_count": 0,
            "health_score": 50,
            "overall_status": OverallStatus.PARTIAL,
            "service_results": {
                "api": ProbeResult("api", ServiceStatus.HEALTHY, 12, checked_at, command="uvicorn app:app"),
                "chat": ProbeResult(
                    "chat",
                    ServiceStatus.UNHEALTHY,
                    5003,
                    checked_at,
                    error_message="Health check failed",
                    command="node chat.js",
                ),
            },
            "system_info": {"python_version": "3.12.1", "platform": "linux", "architecture": "x86_64"},
            "performance_metrics": {
                "config_load_time_ms": 3.2,
                "config_performance": "excellent",
                "memory_usage": {"rss_mb": 40},
            },
            "workflow_status": {
                "total_workflows": 3,
                "tracked_workflows": 2,
                "required_workflows": {"service-validation.yml": True},
            },
            "package_status": {"name": "demo-app", "version": "1.2.3", "total_dependencies": 3},
        }
        values.update(overrides)
        return AggregateReport(**values)

    return _make
