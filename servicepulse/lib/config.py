"""Settings loader for the status reporter.

Values are resolved in three layers: built-in defaults, then
``config/servicepulse.yaml``, then ``SERVICEPULSE_*`` environment variables
(a ``.env`` file is loaded first when present).
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from servicepulse.lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join("config", "servicepulse.yaml")
ENV_PREFIX = "SERVICEPULSE_"


@dataclass
class Settings:
    """Reporter settings."""

    project_name: str = "ServicePulse"
    registry_path: str = os.path.join("config", "services.yaml")
    report_dir: str = os.path.join("reports", "service-status")
    latest_dir: str = "."
    probe_timeout_ms: int = 5000
    poll_interval_ms: int = 500
    max_concurrency: int = 10
    default_port: int = 3001
    workflows_dir: str = os.path.join(".github", "workflows")
    required_workflows: list[str] = field(
        default_factory=lambda: [
            "service-validation.yml",
            "service-validation-gateway.yml",
            "service-scheduled-discovery.yml",
        ]
    )
    workflow_keywords: list[str] = field(
        default_factory=lambda: ["service", "validation", "automation"]
    )
    project_manifest: str = "pyproject.toml"
    dependency_keywords: list[str] = field(default_factory=lambda: ["http", "health"])
    log_level: str = "INFO"
    log_file: str | None = None
    structured_logs: bool = False

    def __post_init__(self):
        if self.probe_timeout_ms <= 0:
            raise ConfigurationError(f"probe_timeout_ms must be positive, got {self.probe_timeout_ms}")
        if self.poll_interval_ms <= 0:
            raise ConfigurationError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        if self.max_concurrency < 1:
            raise ConfigurationError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        if not 1 <= self.default_port <= 65535:
            raise ConfigurationError(f"default_port out of range: {self.default_port}")


def _coerce(name: str, raw: str, annotation: Any) -> Any:
    """Convert an environment string to the type of a Settings field."""
    if annotation is bool:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if annotation is int:
        try:
            return int(raw)
        except ValueError as e:
            raise ConfigurationError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}") from e
    if annotation == list[str]:
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


class ConfigLoader:
    """Loads reporter settings from YAML, ``.env`` and the environment."""

    def __init__(self, config_path: str | None = None, env_file: str | None = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to the settings YAML (default: config/servicepulse.yaml)
            env_file: Path to .env file (default: ./.env)
        """
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH)
        self.env_file = Path(env_file or ".env")

        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.debug(f"Loaded environment from {self.env_file}")

    def load(self) -> Settings:
        """Resolve settings from all layers.

        Returns:
            Settings instance

        Raises:
            ConfigurationError: If an override has the wrong type or a value is out of range
        """
        values = self._load_file()
        values.update(self._load_env_vars())
        try:
            return Settings(**values)
        except TypeError as e:
            raise ConfigurationError(f"Invalid settings in {self.config_path}: {e}", str(self.config_path)) from e

    def _load_file(self) -> dict[str, Any]:
        """Load settings from the YAML file, falling back to defaults."""
        if not self.config_path.exists():
            logger.warning(f"Config file not found: {self.config_path}, using defaults")
            return {}

        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config {self.config_path}: {e}, using defaults")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Config file {self.config_path} is not a mapping, using defaults")
            return {}

        known = {f.name for f in fields(Settings)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings in {self.config_path}: {unknown}")

        logger.info(f"Loaded settings from {self.config_path}")
        return {k: v for k, v in data.items() if k in known}

    def _load_env_vars(self) -> dict[str, Any]:
        """Collect ``SERVICEPULSE_*`` overrides."""
        overrides = {}
        for f in fields(Settings):
            raw = os.getenv(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None:
                continue
            annotation = f.type
            if annotation == str | None:
                annotation = str
            overrides[f.name] = _coerce(f.name, raw, annotation)
        return overrides
