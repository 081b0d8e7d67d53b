"""Command-line entry point: run one sweep and write the reports."""

import argparse
import asyncio
import logging
import sys

from servicepulse.core.reporter import StatusReporter
from servicepulse.lib.config import ConfigLoader
from servicepulse.lib.errors import ServicePulseError
from servicepulse.lib.logger import setup_logging

logger = logging.getLogger(__name__)


async def run(config_path: str | None = None, debug: bool = False, quiet: bool = False) -> int:
    """Run a full status report.

    An unhealthy fleet is still a successful run; only a failure to produce
    the report returns non-zero.

    Args:
        config_path: Optional settings YAML path
        debug: Enable debug logging
        quiet: Only show warnings and errors from the reporter

    Returns:
        Process exit code
    """
    try:
        settings = ConfigLoader(config_path).load()
    except ServicePulseError as e:
        setup_logging(log_level="INFO")
        logger.error(f"Invalid settings: {e}")
        return 1

    setup_logging(
        log_level="DEBUG" if debug else settings.log_level,
        log_file=settings.log_file,
        structured=settings.structured_logs,
        quiet=quiet and not debug,
    )

    reporter = StatusReporter(settings)
    try:
        context = await reporter.generate_full_report()
    except Exception as e:
        logger.error(f"Failed to generate status report: {e}", exc_info=debug)
        return 1

    report = context.report
    print("\n🎉 Status report completed")
    print(f"📊 Overall Status: {report.overall_status.value.upper()}")
    print(f"📈 Health Score: {report.health_score}%")
    for path in context.emitted.artifacts:
        print(f"  📄 {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="ServicePulse - service health sweep and status report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  servicepulse                              # Sweep with config/servicepulse.yaml
  servicepulse --config ops/pulse.yaml      # Alternate settings file
  servicepulse --debug                      # Verbose probe logging
  servicepulse --quiet                      # Warnings and the final summary only
        """,
    )
    parser.add_argument("--config", type=str, help="Path to settings YAML")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors")

    args = parser.parse_args(argv)
    return asyncio.run(run(config_path=args.config, debug=args.debug, quiet=args.quiet))


if __name__ == "__main__":
    sys.exit(main())
