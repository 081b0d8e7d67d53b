"""Concurrent health sweep and system status classification."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from servicepulse.core.prober import HealthProber
from servicepulse.models.report import AggregateReport, OverallStatus, ProbeResult, ServiceStatus
from servicepulse.models.service import ServiceDescriptor

logger = logging.getLogger(__name__)


def compute_health_score(healthy: int, total: int) -> int:
    """Percentage of healthy services, rounded half up; 0 for an empty fleet."""
    if total <= 0:
        return 0
    return int(healthy * 100 / total + 0.5)


def determine_overall_status(healthy: int, failed: int, warnings: int, score: int) -> OverallStatus:
    """Classify the system. Rules are evaluated in order; first match wins."""
    if failed > healthy:
        return OverallStatus.CRITICAL
    if score < 50:
        return OverallStatus.DEGRADED
    if warnings > 3:
        return OverallStatus.WARNING
    if score < 80:
        return OverallStatus.PARTIAL
    return OverallStatus.HEALTHY


@dataclass
class SweepState:
    """Mutable report under construction for a single run."""

    timestamp: datetime
    total_services: int = 0
    healthy_count: int = 0
    failed_count: int = 0
    warning_count: int = 0
    service_results: dict[str, ProbeResult] = field(default_factory=dict)
    system_info: dict[str, Any] = field(default_factory=dict)
    performance_metrics: dict[str, Any] = field(default_factory=dict)
    workflow_status: dict[str, Any] = field(default_factory=dict)
    package_status: dict[str, Any] = field(default_factory=dict)
    registry_error: str | None = None

    def add_warning(self, message: str) -> None:
        logger.warning(message)
        self.warning_count += 1

    def record(self, result: ProbeResult) -> None:
        self.service_results[result.service_name] = result
        if result.status is ServiceStatus.HEALTHY:
            self.healthy_count += 1
        elif result.status in (ServiceStatus.UNHEALTHY, ServiceStatus.ERROR):
            self.failed_count += 1

    def finalize(self) -> AggregateReport:
        """Compute score and status and freeze the report."""
        score = compute_health_score(self.healthy_count, self.total_services)
        status = determine_overall_status(
            self.healthy_count, self.failed_count, self.warning_count, score
        )
        return AggregateReport(
            timestamp=self.timestamp,
            total_services=self.total_services,
            healthy_count=self.healthy_count,
            failed_count=self.failed_count,
            warning_count=self.warning_count,
            health_score=score,
            overall_status=status,
            service_results=dict(self.service_results),
            system_info=self.system_info,
            performance_metrics=self.performance_metrics,
            workflow_status=self.workflow_status,
            package_status=self.package_status,
            registry_error=self.registry_error,
        )


class StatusAggregator:
    """Probes every registered service concurrently and tallies the results."""

    def __init__(
        self,
        timeout_ms: int = 5000,
        poll_interval_ms: int = 500,
        default_port: int = 3001,
        max_concurrency: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize aggregator.

        Args:
            timeout_ms: Per-probe time budget
            poll_interval_ms: Wait between probe attempts
            default_port: Port for services registered without one
            max_concurrency: Maximum probes in flight
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.timeout_ms = timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self.default_port = default_port
        self.max_concurrency = max_concurrency
        self.transport = transport

    async def run_health_sweep(
        self, registry: dict[str, ServiceDescriptor], state: SweepState
    ) -> SweepState:
        """Probe all services and record one ProbeResult per service.

        Args:
            registry: Services to probe
            state: Sweep state to fill in

        Returns:
            The same state, with service results and counts updated
        """
        state.total_services = len(registry)
        if not registry:
            return state

        logger.info(f"Probing {len(registry)} services (max {self.max_concurrency} concurrent)")
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async with httpx.AsyncClient(transport=self.transport) as client:
            prober = HealthProber(client)

            async def bounded(descriptor: ServiceDescriptor) -> ProbeResult:
                async with semaphore:
                    return await self._check_service(prober, descriptor)

            outcomes = await asyncio.gather(
                *(bounded(d) for d in registry.values()), return_exceptions=True
            )

        for descriptor, outcome in zip(registry.values(), outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Probe task for {descriptor.name} died: {outcome!r}")
                outcome = ProbeResult(
                    service_name=descriptor.name,
                    status=ServiceStatus.UNKNOWN,
                    response_time_ms=0,
                    checked_at=datetime.now(UTC),
                    error_message=str(outcome) or type(outcome).__name__,
                    command=descriptor.command_line,
                )
            state.record(outcome)

        logger.info(
            f"Sweep complete: {state.healthy_count}/{state.total_services} healthy, "
            f"{state.failed_count} failed"
        )
        return state

    async def _check_service(self, prober: HealthProber, descriptor: ServiceDescriptor) -> ProbeResult:
        """Probe one service and classify the outcome."""
        checked_at = datetime.now(UTC)
        start = time.monotonic()
        error_message = None

        try:
            url = descriptor.health_url(self.default_port)
            logger.debug(f"Testing service: {descriptor.name} at {url}")
            alive = await prober.probe(url, self.timeout_ms, self.poll_interval_ms)
            if alive:
                status = ServiceStatus.HEALTHY
            else:
                status = ServiceStatus.UNHEALTHY
                error_message = "Health check failed"
        except Exception as e:
            logger.warning(f"Probe for {descriptor.name} raised: {e}")
            status = ServiceStatus.ERROR
            error_message = str(e)

        response_time_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"{descriptor.name}: {status.value} ({response_time_ms}ms)",
            extra={
                "extra_fields": {
                    "service": descriptor.name,
                    "status": status.value,
                    "response_time_ms": response_time_ms,
                }
            },
        )

        return ProbeResult(
            service_name=descriptor.name,
            status=status,
            response_time_ms=response_time_ms,
            checked_at=checked_at,
            error_message=error_message,
            command=descriptor.command_line,
        )
