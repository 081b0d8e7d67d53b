"""Report models produced by a health sweep."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ServiceStatus(Enum):
    """Classification of a single service probe."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    ERROR = "error"
    UNKNOWN = "unknown"  # probe task died before classification


class OverallStatus(Enum):
    """System-wide status derived from sweep metrics."""

    HEALTHY = "healthy"
    PARTIAL = "partial"
    WARNING = "warning"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class Priority(Enum):
    """Recommendation priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of probing one service."""

    service_name: str
    status: ServiceStatus
    response_time_ms: int
    checked_at: datetime
    error_message: str | None = None
    command: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.service_name,
            "status": self.status.value,
            "response_time_ms": self.response_time_ms,
            "error_message": self.error_message,
            "last_check": self.checked_at.isoformat(),
            "command": self.command,
        }


@dataclass(frozen=True)
class Recommendation:
    """An actionable finding."""

    priority: Priority
    category: str
    message: str
    action: str

    def to_dict(self) -> dict[str, str]:
        return {
            "priority": self.priority.value,
            "category": self.category,
            "message": self.message,
            "action": self.action,
        }


@dataclass(frozen=True)
class AggregateReport:
    """Finalized result of one sweep.

    Peripheral sections (system info, performance, workflows, packages) are
    either the collected data or ``{"error": message}`` when collection failed.
    """

    timestamp: datetime
    total_services: int
    healthy_count: int
    failed_count: int
    warning_count: int
    health_score: int
    overall_status: OverallStatus
    service_results: dict[str, ProbeResult] = field(default_factory=dict)
    recommendations: tuple[Recommendation, ...] = ()
    system_info: dict[str, Any] = field(default_factory=dict)
    performance_metrics: dict[str, Any] = field(default_factory=dict)
    workflow_status: dict[str, Any] = field(default_factory=dict)
    package_status: dict[str, Any] = field(default_factory=dict)
    registry_error: str | None = None

    @property
    def report_id(self) -> str:
        return self.timestamp.isoformat()

    @property
    def config_performance(self) -> str | None:
        return self.performance_metrics.get("config_performance")

    def missing_workflows(self) -> list[str]:
        """Required workflows that were not found, in configured order."""
        required = self.workflow_status.get("required_workflows") or {}
        return [name for name, present in required.items() if not present]

    def to_dict(self) -> dict[str, Any]:
        """Machine-readable form of the report."""
        if self.registry_error is not None:
            services: dict[str, Any] = {"error": self.registry_error}
        else:
            services = {name: result.to_dict() for name, result in self.service_results.items()}

        return {
            "timestamp": self.timestamp.isoformat(),
            "summary": {
                "overall_status": self.overall_status.value,
                "health_score": self.health_score,
                "total_services": self.total_services,
                "healthy_services": self.healthy_count,
                "failed_services": self.failed_count,
                "warnings": self.warning_count,
            },
            "components": {
                "services": services,
                "workflows": self.workflow_status,
                "packages": self.package_status,
                "performance": self.performance_metrics,
            },
            "system_info": self.system_info,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
        }
