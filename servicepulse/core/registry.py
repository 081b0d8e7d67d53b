"""Service registry loader."""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from servicepulse.lib.errors import ConfigurationError
from servicepulse.models.service import ServiceDescriptor

logger = logging.getLogger(__name__)

# Top-level keys accepted for the service mapping, in lookup order
REGISTRY_KEYS = ("services", "mcpServers", "servers")


def load_registry(path: str | Path) -> dict[str, ServiceDescriptor]:
    """Load the service registry.

    The file is YAML (JSON is accepted too) with a top-level ``services``
    mapping of name to ``{command, args, port, healthPath, env}``.

    Args:
        path: Registry file path

    Returns:
        Mapping of service name to descriptor, in file order

    Raises:
        ConfigurationError: If the file is missing, unparsable or an entry is malformed
    """
    registry_path = Path(path)

    if not registry_path.exists():
        raise ConfigurationError(f"Service registry not found: {registry_path}", str(registry_path))

    try:
        with open(registry_path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read service registry {registry_path}: {e}", str(registry_path)) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Service registry {registry_path} must be a mapping", str(registry_path))

    key = next((k for k in REGISTRY_KEYS if k in data), None)
    if key is None:
        raise ConfigurationError(
            f"Service registry {registry_path} has no '{REGISTRY_KEYS[0]}' section", str(registry_path)
        )

    entries = data[key] or {}
    if not isinstance(entries, dict):
        raise ConfigurationError(f"'{key}' in {registry_path} must be a mapping", str(registry_path))

    registry = {}
    for name, entry in entries.items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Service '{name}' must be a mapping", str(registry_path))
        try:
            registry[str(name)] = ServiceDescriptor(name=str(name), **entry)
        except (ValidationError, TypeError) as e:
            raise ConfigurationError(f"Invalid service '{name}': {e}", str(registry_path)) from e

    logger.info(f"Loaded {len(registry)} services from {registry_path}")
    return registry
