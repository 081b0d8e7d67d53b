"""Run orchestration: registry -> sweep -> recommendations -> report files."""

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx

from servicepulse.core import collectors
from servicepulse.core.aggregator import StatusAggregator, SweepState
from servicepulse.core.emitter import EmitResult, ReportEmitter
from servicepulse.core.recommendations import derive_recommendations
from servicepulse.core.registry import load_registry
from servicepulse.lib.config import Settings
from servicepulse.lib.errors import CollectionError, ConfigurationError
from servicepulse.models.report import AggregateReport
from servicepulse.models.service import ServiceDescriptor

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Everything one reporting run needs, passed explicitly between stages."""

    settings: Settings
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    registry: dict[str, ServiceDescriptor] = field(default_factory=dict)
    transport: httpx.AsyncBaseTransport | None = None
    report: AggregateReport | None = None
    emitted: EmitResult | None = None


class StatusReporter:
    """Runs a full sweep and writes the reports."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize reporter.

        Args:
            settings: Reporter settings
            transport: Optional httpx transport used for all probes
        """
        self.settings = settings
        self.transport = transport

    def new_context(self) -> RunContext:
        return RunContext(settings=self.settings, transport=self.transport)

    async def generate_full_report(self) -> RunContext:
        """Run one sweep end to end.

        Returns:
            The finished run context, with ``report`` and ``emitted`` set

        Raises:
            ReportGenerationError: If no report artifact could be written
        """
        context = self.new_context()
        logger.info(f"Starting status report run {context.timestamp.isoformat()}")

        state = SweepState(timestamp=context.timestamp)
        await self._collect_system_info(state)
        await self._collect_service_status(context, state)
        self._collect_workflow_status(state)
        self._collect_package_status(state)
        self._collect_performance_metrics(state)

        report = state.finalize()
        report = dataclasses.replace(report, recommendations=tuple(derive_recommendations(report)))
        context.report = report

        logger.info(
            f"Overall status: {report.overall_status.value.upper()} "
            f"(health score {report.health_score}%, {report.warning_count} warnings)"
        )

        emitter = ReportEmitter(
            self.settings.report_dir, self.settings.latest_dir, self.settings.project_name
        )
        context.emitted = emitter.emit(report)
        if not context.emitted.ok:
            logger.warning(
                f"Report written with {len(context.emitted.failures)} persistence failure(s)"
            )
        return context

    def _load_registry(self) -> dict[str, ServiceDescriptor]:
        return load_registry(self.settings.registry_path)

    async def _collect_service_status(self, context: RunContext, state: SweepState) -> None:
        try:
            context.registry = self._load_registry()
        except ConfigurationError as e:
            state.registry_error = str(e)
            state.add_warning(f"Service registry unavailable, probing zero services: {e}")
            context.registry = {}

        aggregator = StatusAggregator(
            timeout_ms=self.settings.probe_timeout_ms,
            poll_interval_ms=self.settings.poll_interval_ms,
            default_port=self.settings.default_port,
            max_concurrency=self.settings.max_concurrency,
            transport=context.transport,
        )
        await aggregator.run_health_sweep(context.registry, state)

    async def _collect_system_info(self, state: SweepState) -> None:
        try:
            state.system_info = await collectors.collect_system_info()
        except CollectionError as e:
            state.system_info = {"error": e.reason}
            state.add_warning(f"Error collecting system info: {e}")

    def _collect_workflow_status(self, state: SweepState) -> None:
        try:
            state.workflow_status = collectors.collect_workflow_status(
                self.settings.workflows_dir,
                self.settings.required_workflows,
                self.settings.workflow_keywords,
            )
        except CollectionError as e:
            state.workflow_status = {"error": e.reason}
            state.add_warning(f"Error collecting workflow status: {e}")

    def _collect_package_status(self, state: SweepState) -> None:
        try:
            state.package_status = collectors.collect_package_status(
                self.settings.project_manifest, self.settings.dependency_keywords
            )
        except CollectionError as e:
            state.package_status = {"error": e.reason}
            state.add_warning(f"Error collecting package status: {e}")

    def _collect_performance_metrics(self, state: SweepState) -> None:
        try:
            metrics = collectors.collect_performance_metrics(self._load_registry)
        except CollectionError as e:
            state.performance_metrics = {"error": e.reason}
            state.add_warning(f"Error collecting performance metrics: {e}")
            return

        state.performance_metrics = metrics
        if metrics["config_performance"] == "needs_optimization":
            state.add_warning(
                f"Registry load took {metrics['config_load_time_ms']}ms (needs optimization)"
            )
