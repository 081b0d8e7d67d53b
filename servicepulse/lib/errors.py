"""Error taxonomy for the status reporter.

Per-service and per-section errors are caught at their boundary and folded
into the report counts. Only ReportGenerationError ends a run.
"""


class ServicePulseError(Exception):
    """Base class for all reporter errors."""


class ConfigurationError(ServicePulseError):
    """Service registry or settings file is missing or malformed."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class ProbeError(ServicePulseError):
    """A health probe raised instead of returning a verdict."""


class CollectionError(ServicePulseError):
    """A peripheral metadata collector failed."""

    def __init__(self, section: str, message: str):
        super().__init__(f"{section}: {message}")
        self.section = section
        self.reason = message


class PersistenceError(ServicePulseError):
    """Writing or copying a single report artifact failed."""

    def __init__(self, artifact: str, message: str):
        super().__init__(f"Failed to persist {artifact}: {message}")
        self.artifact = artifact


class ReportGenerationError(ServicePulseError):
    """No report artifact could be produced."""
