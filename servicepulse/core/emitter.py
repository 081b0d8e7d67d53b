"""Report rendering and persistence.

One finalized AggregateReport is rendered three ways (JSON, Markdown and a
plain-text summary). The files go to a per-day run directory; the JSON and
Markdown are also copied to a fixed location so the latest run is easy to
find.
"""

import json
import logging
import re
import shutil
from dataclasses import dataclass, field
from datetime import UTC
from pathlib import Path

from servicepulse.lib.errors import PersistenceError, ReportGenerationError
from servicepulse.models.report import AggregateReport, OverallStatus

logger = logging.getLogger(__name__)

JSON_REPORT = "service-status-report.json"
MARKDOWN_REPORT = "service-status-report.md"
SUMMARY_REPORT = "service-status-summary.txt"

STATUS_EMOJI = {
    "healthy": "✅",
    "partial": "⚠️",
    "warning": "⚠️",
    "degraded": "❌",
    "critical": "🚨",
    "unhealthy": "❌",
    "error": "🚨",
}
UNKNOWN_EMOJI = "❓"


def _emoji(status: str) -> str:
    return STATUS_EMOJI.get(status, UNKNOWN_EMOJI)


@dataclass
class EmitResult:
    """Where a report ended up."""

    artifacts: list[Path] = field(default_factory=list)
    latest: list[Path] = field(default_factory=list)
    failures: list[PersistenceError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def render_json(report: AggregateReport) -> str:
    """Machine-readable report."""
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def _services_section(report: AggregateReport) -> str:
    if report.registry_error is not None:
        return f"Service data not available: {report.registry_error}"
    if not report.service_results:
        return "No services registered"

    blocks = []
    for name, result in report.service_results.items():
        lines = [
            f"### {name}",
            f"- **Status:** {_emoji(result.status.value)} {result.status.value}",
            f"- **Response Time:** {result.response_time_ms}ms",
            f"- **Configuration:** {result.command or 'N/A'}",
            f"- **Last Check:** {result.checked_at.isoformat()}",
        ]
        if result.error_message:
            lines.append(f"- **Error:** {result.error_message}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _system_section(report: AggregateReport) -> str:
    info = report.system_info
    if not info or "error" in info:
        return "System information not available"
    return "\n".join(
        [
            f"- **Python Version:** {info.get('python_version', 'N/A')}",
            f"- **Pip Version:** {info.get('pip_version', 'N/A')}",
            f"- **Memory Usage:** {info.get('memory_usage_mb', 0)}MB",
            f"- **Platform:** {info.get('platform', 'N/A')} ({info.get('architecture', 'N/A')})",
            f"- **Host:** {info.get('hostname', 'N/A')}",
        ]
    )


def _performance_section(report: AggregateReport) -> str:
    perf = report.performance_metrics
    if not perf or "error" in perf:
        return "Performance data not available"
    memory = perf.get("memory_usage", {})
    return "\n".join(
        [
            f"- **Config Load Time:** {perf.get('config_load_time_ms')}ms",
            f"- **Memory Usage:** {memory.get('rss_mb', 0)}MB RSS",
            f"- **Performance Rating:** {perf.get('config_performance')}",
        ]
    )


def _package_section(report: AggregateReport) -> str:
    pkg = report.package_status
    if not pkg or "error" in pkg:
        return "Package data not available"
    return "\n".join(
        [
            f"- **Project:** {pkg.get('name')} v{pkg.get('version')}",
            f"- **Total Dependencies:** {pkg.get('total_dependencies')}",
            f"- **Tracked Dependencies:** {pkg.get('tracked_dependencies')}",
            f"- **Scripts:** {pkg.get('scripts')}",
        ]
    )


def _workflow_section(report: AggregateReport) -> str:
    wf = report.workflow_status
    if not wf or "error" in wf:
        return "Workflow data not available"
    required = ", ".join(
        f"{'✅' if present else '❌'} {name}"
        for name, present in (wf.get("required_workflows") or {}).items()
    )
    return "\n".join(
        [
            f"- **Total Workflows:** {wf.get('total_workflows')}",
            f"- **Tracked Workflows:** {wf.get('tracked_workflows')}",
            f"- **Required Workflows:** {required or 'none configured'}",
        ]
    )


def render_markdown(report: AggregateReport, project_name: str = "ServicePulse") -> str:
    """Human-readable report."""
    status = report.overall_status.value
    recs = "\n".join(
        f"### {rec.priority.value.upper()} Priority - {rec.category}\n"
        f"{rec.message}\n\n"
        f"**Action:** {rec.action}\n"
        for rec in report.recommendations
    )
    critical = (
        "Immediate attention required"
        if report.overall_status is OverallStatus.CRITICAL
        else "No critical issues detected"
    )

    return f"""# {project_name} - Service Status Report

**Generated:** {report.timestamp.isoformat()}
**Overall Status:** {_emoji(status)} {status.upper()}
**Health Score:** {report.health_score}%

## 📊 Executive Summary

- **Total Services:** {report.total_services}
- **Healthy Services:** {report.healthy_count}
- **Failed Services:** {report.failed_count}
- **Warnings:** {report.warning_count}

## 🛡️ Service Status

{_services_section(report)}

## ⚙️ System Information

{_system_section(report)}

## ⚡ Performance Metrics

{_performance_section(report)}

## 📦 Package Status

{_package_section(report)}

## ⚙️ Workflow Status

{_workflow_section(report)}

## 🔧 Recommendations

{recs}
## 📋 Next Steps

1. **Address Critical Issues:** {critical}
2. **Monitor Health Score:** Current score is {report.health_score}%
3. **Review Recommendations:** {len(report.recommendations)} recommendations generated
4. **Schedule Next Check:** Regular monitoring active

---

**Generated by {project_name} Status Reporter**
**Report ID:** {report.report_id}
"""


def render_summary(report: AggregateReport, project_name: str = "ServicePulse") -> str:
    """Terse plain-text summary."""
    closing = (
        "✅ All systems operational"
        if report.overall_status is OverallStatus.HEALTHY
        else "⚠️ Attention required - see full report"
    )
    return f"""{project_name} - Service Status Summary
{report.timestamp.isoformat()}

OVERALL STATUS: {report.overall_status.value.upper()}
HEALTH SCORE: {report.health_score}%

SERVICES: {report.healthy_count}/{report.total_services} healthy
WARNINGS: {report.warning_count}
RECOMMENDATIONS: {len(report.recommendations)}

{closing}
"""


_SUMMARY_PATTERNS = {
    "overall_status": re.compile(r"^OVERALL STATUS: (\w+)$", re.M),
    "health_score": re.compile(r"^HEALTH SCORE: (\d+)%$", re.M),
    "services": re.compile(r"^SERVICES: (\d+)/(\d+) healthy$", re.M),
    "warnings": re.compile(r"^WARNINGS: (\d+)$", re.M),
    "recommendations": re.compile(r"^RECOMMENDATIONS: (\d+)$", re.M),
}


def read_summary(path: str | Path) -> dict:
    """Parse a summary file written by render_summary.

    Raises:
        ValueError: If a field is missing
    """
    text = Path(path).read_text(encoding="utf-8")
    matches = {}
    for key, pattern in _SUMMARY_PATTERNS.items():
        match = pattern.search(text)
        if match is None:
            raise ValueError(f"Summary {path} has no {key} line")
        matches[key] = match

    return {
        "overall_status": matches["overall_status"].group(1).lower(),
        "health_score": int(matches["health_score"].group(1)),
        "healthy": int(matches["services"].group(1)),
        "total": int(matches["services"].group(2)),
        "warnings": int(matches["warnings"].group(1)),
        "recommendations": int(matches["recommendations"].group(1)),
    }


class ReportEmitter:
    """Writes report artifacts to disk."""

    def __init__(
        self,
        report_dir: str | Path,
        latest_dir: str | Path = ".",
        project_name: str = "ServicePulse",
    ):
        """Initialize emitter.

        Args:
            report_dir: Root for per-day run directories
            latest_dir: Fixed location for copies of the latest JSON and Markdown
            project_name: Title used in the rendered reports
        """
        self.report_dir = Path(report_dir)
        self.latest_dir = Path(latest_dir)
        self.project_name = project_name

    def run_dir(self, report: AggregateReport) -> Path:
        """Per-day directory for a report, e.g. ``reports/service-status/2026-10-18``."""
        return self.report_dir / report.timestamp.astimezone(UTC).strftime("%Y-%m-%d")

    def emit(self, report: AggregateReport) -> EmitResult:
        """Render and persist all artifacts.

        A failed write is logged and recorded; the remaining artifacts are
        still attempted.

        Args:
            report: Finalized report

        Returns:
            EmitResult listing written files and failures

        Raises:
            ReportGenerationError: If none of the run artifacts could be written
        """
        result = EmitResult()
        run_dir = self.run_dir(report)

        try:
            run_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create report directory {run_dir}: {e}")

        renderings = [
            (JSON_REPORT, lambda: render_json(report)),
            (MARKDOWN_REPORT, lambda: render_markdown(report, self.project_name)),
            (SUMMARY_REPORT, lambda: render_summary(report, self.project_name)),
        ]

        written = {}
        for filename, render in renderings:
            path = run_dir / filename
            try:
                self._write(path, render)
            except PersistenceError as e:
                logger.error(str(e))
                result.failures.append(e)
                continue
            written[filename] = path
            result.artifacts.append(path)
            logger.info(f"Wrote {path}")

        if not result.artifacts:
            raise ReportGenerationError(
                f"No report artifacts could be written to {run_dir} "
                f"({len(result.failures)} failures)"
            )

        for filename in (JSON_REPORT, MARKDOWN_REPORT):
            if filename not in written:
                continue
            target = self.latest_dir / filename
            try:
                self._copy(written[filename], target)
            except PersistenceError as e:
                logger.error(str(e))
                result.failures.append(e)
                continue
            result.latest.append(target)

        return result

    @staticmethod
    def _write(path: Path, render) -> None:
        try:
            path.write_text(render(), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(str(path), str(e)) from e

    @staticmethod
    def _copy(source: Path, target: Path) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            raise PersistenceError(str(target), str(e)) from e
