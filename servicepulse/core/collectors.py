"""Peripheral metadata collectors.

Each collector returns a plain dict for the report or raises
CollectionError. The aggregator turns a failure into a warning and marks
the section unavailable.
"""

import asyncio
import logging
import os
import platform
import socket
import sys
import time
import tomllib
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import psutil

from servicepulse.lib.errors import CollectionError

logger = logging.getLogger(__name__)

# Config load latency thresholds (ms)
EXCELLENT_LOAD_MS = 1000
GOOD_LOAD_MS = 3000

_MB = 1024 * 1024


def rate_config_performance(load_time_ms: float) -> str:
    """Rate registry load latency as excellent, good or needs_optimization."""
    if load_time_ms < EXCELLENT_LOAD_MS:
        return "excellent"
    if load_time_ms < GOOD_LOAD_MS:
        return "good"
    return "needs_optimization"


async def _tool_version(*cmd: str) -> str:
    """Return a tool's ``--version`` output, or 'Not available'."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return "Not available"

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=5)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return "Not available"
    if proc.returncode != 0:
        return "Not available"
    return stdout.decode(errors="replace").strip()


async def collect_system_info() -> dict[str, Any]:
    """Collect interpreter, tooling and host details."""
    try:
        process = psutil.Process(os.getpid())
        memory = process.memory_info()
        uptime = time.time() - process.create_time()
    except psutil.Error as e:
        raise CollectionError("system_info", str(e)) from e

    return {
        "python_version": platform.python_version(),
        "python_implementation": platform.python_implementation(),
        "pip_version": await _tool_version(sys.executable, "-m", "pip", "--version"),
        "uptime_seconds": round(uptime, 2),
        "memory_usage_mb": round(memory.rss / _MB),
        "platform": sys.platform,
        "architecture": platform.machine(),
        "hostname": socket.gethostname(),
    }


def collect_performance_metrics(load_registry: Callable[[], Any]) -> dict[str, Any]:
    """Time one registry load and snapshot process resource usage.

    Args:
        load_registry: Zero-argument callable that loads the registry

    Raises:
        CollectionError: If the registry cannot be loaded or psutil fails
    """
    start = time.perf_counter()
    try:
        load_registry()
    except Exception as e:
        raise CollectionError("performance", f"registry load failed: {e}") from e
    load_time_ms = round((time.perf_counter() - start) * 1000, 2)

    try:
        process = psutil.Process(os.getpid())
        memory = process.memory_info()
        cpu = process.cpu_times()
    except psutil.Error as e:
        raise CollectionError("performance", str(e)) from e

    return {
        "config_load_time_ms": load_time_ms,
        "config_performance": rate_config_performance(load_time_ms),
        "memory_usage": {
            "rss_mb": round(memory.rss / _MB),
            "vms_mb": round(memory.vms / _MB),
        },
        "cpu_times": {"user": cpu.user, "system": cpu.system},
        "timestamp": datetime.now(UTC).isoformat(),
    }


def collect_workflow_status(
    workflows_dir: str | Path, required: list[str], keywords: list[str]
) -> dict[str, Any]:
    """Check the CI workflow directory for required workflow files.

    Raises:
        CollectionError: If the directory cannot be listed
    """
    try:
        files = sorted(p.name for p in Path(workflows_dir).iterdir() if p.is_file())
    except OSError as e:
        raise CollectionError("workflows", str(e)) from e

    matched = [f for f in files if any(k in f for k in keywords)]

    return {
        "total_workflows": len(files),
        "tracked_workflows": len(matched),
        "workflow_files": matched,
        "status": "active",
        "required_workflows": {name: name in files for name in required},
    }


def collect_package_status(manifest: str | Path, keywords: list[str]) -> dict[str, Any]:
    """Summarize the project's ``pyproject.toml``.

    Raises:
        CollectionError: If the manifest is missing or invalid TOML
    """
    manifest_path = Path(manifest)
    try:
        with open(manifest_path, "rb") as f:
            data = tomllib.load(f)
        mtime = manifest_path.stat().st_mtime
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise CollectionError("packages", str(e)) from e

    project = data.get("project", {})
    dependencies = list(project.get("dependencies", []))
    for extra in project.get("optional-dependencies", {}).values():
        dependencies.extend(extra)

    # "httpx>=0.27" -> "httpx"
    names = []
    for requirement in dependencies:
        name = requirement.split(";")[0]
        for sep in "<>=!~[ ":
            name = name.split(sep)[0]
        names.append(name.strip())

    tracked = [n for n in names if any(k in n.lower() for k in keywords)]
    scripts = sorted(project.get("scripts", {}))

    return {
        "name": project.get("name", "unknown"),
        "version": project.get("version", "unknown"),
        "total_dependencies": len(names),
        "tracked_dependencies": len(tracked),
        "tracked_dependency_list": tracked,
        "scripts": len(scripts),
        "script_list": scripts,
        "last_modified": datetime.fromtimestamp(mtime, UTC).isoformat(),
    }
