"""Tests for the health sweep and status classification."""

import asyncio
import logging
from datetime import UTC, datetime

import httpx
import pytest

from servicepulse.core.aggregator import (
    StatusAggregator,
    SweepState,
    compute_health_score,
    determine_overall_status,
)
from servicepulse.core.prober import HealthProber
from servicepulse.lib.errors import ProbeError
from servicepulse.models.report import OverallStatus, ServiceStatus
from servicepulse.models.service import ServiceDescriptor


def build_fleet(size: int, base_port: int = 4001) -> dict[str, ServiceDescriptor]:
    return {
        f"svc-{i}": ServiceDescriptor(name=f"svc-{i}", command="run", port=base_port + i)
        for i in range(size)
    }


def fast_aggregator(transport: httpx.AsyncBaseTransport, **kwargs) -> StatusAggregator:
    return StatusAggregator(timeout_ms=100, poll_interval_ms=20, transport=transport, **kwargs)


async def sweep(aggregator: StatusAggregator, registry) -> SweepState:
    state = SweepState(timestamp=datetime.now(UTC))
    return await aggregator.run_health_sweep(registry, state)


# Score and classification


@pytest.mark.parametrize(
    "healthy, total, expected",
    [(0, 0, 0), (0, 5, 0), (5, 5, 100), (3, 10, 30), (2, 3, 67), (1, 3, 33), (1, 8, 13)],
)
def test_compute_health_score(healthy, total, expected):
    """Test score rounding, including half-up on exact halves."""
    assert compute_health_score(healthy, total) == expected


@pytest.mark.parametrize(
    "healthy, failed, warnings, score, expected",
    [
        (3, 7, 0, 30, OverallStatus.CRITICAL),
        (9, 1, 0, 90, OverallStatus.HEALTHY),
        (7, 3, 0, 70, OverallStatus.PARTIAL),
        (4, 4, 0, 40, OverallStatus.DEGRADED),  # unknowns drag the score without failures
        (4, 5, 9, 40, OverallStatus.CRITICAL),  # failures win over everything
        (9, 1, 4, 90, OverallStatus.WARNING),
        (7, 3, 4, 70, OverallStatus.WARNING),  # warning is checked before partial
        (4, 4, 4, 40, OverallStatus.DEGRADED),  # degraded is checked before warning
        (8, 2, 3, 80, OverallStatus.HEALTHY),
        (0, 0, 0, 0, OverallStatus.DEGRADED),
    ],
)
def test_determine_overall_status_rule_order(healthy, failed, warnings, score, expected):
    """Test that the first matching rule wins."""
    assert determine_overall_status(healthy, failed, warnings, score) is expected


# Sweeps


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "healthy_count, expected_status",
    [(3, OverallStatus.CRITICAL), (9, OverallStatus.HEALTHY), (7, OverallStatus.PARTIAL)],
)
async def test_sweep_threshold_scenarios(fleet_transport, healthy_count, expected_status):
    """Test the ten-service fleet scenarios end to end."""
    registry = build_fleet(10)
    healthy_ports = {4001 + i for i in range(healthy_count)}

    state = await sweep(fast_aggregator(fleet_transport(healthy_ports)), registry)
    report = state.finalize()

    assert report.total_services == 10
    assert len(report.service_results) == 10
    assert report.healthy_count == healthy_count
    assert report.failed_count == 10 - healthy_count
    assert report.health_score == healthy_count * 10
    assert report.overall_status is expected_status


@pytest.mark.asyncio
async def test_sweep_results_are_classified(fleet_transport):
    """Test per-service results for healthy and unhealthy services."""
    registry = build_fleet(2)

    state = await sweep(fast_aggregator(fleet_transport({4001})), registry)

    healthy = state.service_results["svc-0"]
    assert healthy.status is ServiceStatus.HEALTHY
    assert healthy.error_message is None
    assert healthy.command == "run"

    unhealthy = state.service_results["svc-1"]
    assert unhealthy.status is ServiceStatus.UNHEALTHY
    assert unhealthy.error_message == "Health check failed"
    assert unhealthy.response_time_ms >= 100


@pytest.mark.asyncio
async def test_empty_registry_scores_zero(fleet_transport):
    """Test that an empty fleet produces a zero score and no results."""
    state = await sweep(fast_aggregator(fleet_transport(set())), {})
    report = state.finalize()

    assert report.total_services == 0
    assert report.service_results == {}
    assert report.health_score == 0
    assert report.overall_status is OverallStatus.DEGRADED


@pytest.mark.asyncio
async def test_probe_exception_counts_as_error(monkeypatch, fleet_transport):
    """Test that a raising probe is classified as error and counted as failed."""
    original = HealthProber.probe

    async def flaky_probe(self, url, timeout_ms=5000, poll_interval_ms=500):
        if ":4002/" in url:
            raise ProbeError("boom")
        return await original(self, url, timeout_ms, poll_interval_ms)

    monkeypatch.setattr(HealthProber, "probe", flaky_probe)
    registry = build_fleet(3)

    state = await sweep(fast_aggregator(fleet_transport({4001, 4002, 4003})), registry)

    assert state.service_results["svc-1"].status is ServiceStatus.ERROR
    assert state.service_results["svc-1"].error_message == "boom"
    assert state.healthy_count == 2
    assert state.failed_count == 1
    assert state.healthy_count + state.failed_count == state.total_services


@pytest.mark.asyncio
async def test_dead_probe_task_is_unknown(monkeypatch, fleet_transport):
    """Test that a task dying before classification leaves the service unknown."""
    original = StatusAggregator._check_service

    async def dying_check(self, prober, descriptor):
        if descriptor.name == "svc-0":
            raise RuntimeError("task died")
        return await original(self, prober, descriptor)

    monkeypatch.setattr(StatusAggregator, "_check_service", dying_check)
    registry = build_fleet(2)

    state = await sweep(fast_aggregator(fleet_transport({4001, 4002})), registry)

    assert len(state.service_results) == 2
    assert state.service_results["svc-0"].status is ServiceStatus.UNKNOWN
    assert state.healthy_count == 1
    assert state.failed_count == 0
    assert state.healthy_count + state.failed_count < state.total_services


@pytest.mark.asyncio
async def test_sweep_is_idempotent_for_healthy_fleet(fleet_transport):
    """Test that two sweeps of an unchanged healthy fleet agree."""
    registry = build_fleet(4)
    aggregator = fast_aggregator(fleet_transport({4001, 4002, 4003, 4004}))

    first = (await sweep(aggregator, registry)).finalize()
    second = (await sweep(aggregator, registry)).finalize()

    for report in (first, second):
        assert report.overall_status is OverallStatus.HEALTHY
        assert report.health_score == 100


@pytest.mark.asyncio
async def test_probes_run_concurrently_within_bound():
    """Test that probes overlap but never exceed max_concurrency."""
    in_flight = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.05)
        in_flight -= 1
        return httpx.Response(200)

    aggregator = fast_aggregator(httpx.MockTransport(handler), max_concurrency=2)
    state = await sweep(aggregator, build_fleet(6))

    assert state.healthy_count == 6
    assert peak == 2


@pytest.mark.asyncio
async def test_default_port_used_when_missing():
    """Test that services without a port are probed on the default port."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(204)

    registry = {"bare": ServiceDescriptor(name="bare")}
    aggregator = fast_aggregator(httpx.MockTransport(handler), default_port=3999)

    state = await sweep(aggregator, registry)

    assert seen == ["http://localhost:3999/health"]
    assert state.service_results["bare"].status is ServiceStatus.HEALTHY


def test_warnings_feed_into_status():
    """Test that collaborator warnings can move a healthy fleet to warning."""
    state = SweepState(timestamp=datetime.now(UTC), total_services=1, healthy_count=1)
    for i in range(4):
        state.add_warning(f"collector {i} failed")

    report = state.finalize()

    assert report.warning_count == 4
    assert report.overall_status is OverallStatus.WARNING


@pytest.mark.asyncio
async def test_service_outcome_logged_with_fields(caplog, fleet_transport):
    """Test that each classified service is logged with structured fields."""
    caplog.set_level(logging.INFO, logger="servicepulse.core.aggregator")

    await sweep(fast_aggregator(fleet_transport({4001})), build_fleet(2))

    fields = {
        record.extra_fields["service"]: record.extra_fields
        for record in caplog.records
        if hasattr(record, "extra_fields")
    }
    assert fields["svc-0"]["status"] == "healthy"
    assert fields["svc-1"]["status"] == "unhealthy"
    assert fields["svc-1"]["response_time_ms"] >= 0


def test_overall_status_has_exactly_five_states():
    """Test that every metric combination maps onto the five overall states."""
    assert {s.value for s in OverallStatus} == {"healthy", "partial", "warning", "degraded", "critical"}

    for healthy in range(0, 6):
        for failed in range(0, 6 - healthy):
            for warnings in range(0, 5):
                score = compute_health_score(healthy, healthy + failed)
                assert determine_overall_status(healthy, failed, warnings, score) in OverallStatus


@pytest.mark.asyncio
async def test_result_reports_joined_command_line(fleet_transport):
    """Test that a service result carries the launch command line and nothing else of the launch spec."""
    registry = {
        "api": ServiceDescriptor(
            name="api", command="uvicorn", args=("app:app", "--reload"), port=4001, env={"MODE": "dev"}
        )
    }

    state = await sweep(fast_aggregator(fleet_transport({4001})), registry)
    data = state.service_results["api"].to_dict()

    assert data["command"] == "uvicorn app:app --reload"
    assert "env" not in data
    assert "args" not in data
