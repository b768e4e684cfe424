"""
Centralized Configuration
=========================
Centralized configuration values and constants for the task helper.

This module provides:
- Change tracking defaults (store location, mtime offset)
- File lock timeout
- Tracing configuration
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union


@dataclass(frozen=True)
class TimeoutConfig:
    """Centralized timeout configuration in seconds."""

    # File operations
    FILE_LOCK: int = int(os.getenv("TASK_HELPER_FILE_LOCK_TIMEOUT", "30"))


@dataclass(frozen=True)
class TrackingConfig:
    """Change tracking configuration."""

    # Tool cache directory, relative to the working directory
    CACHE_DIR: str = os.getenv("TASK_HELPER_CACHE_DIR", ".task_helper")
    PLUGIN_NAME: str = "task-helper"
    STORE_FILENAME: str = "fileUpdates.json"

    # Seconds added to the commit timestamp to absorb mtime granularity and clock skew
    MTIME_OFFSET: int = int(os.getenv("TASK_HELPER_MTIME_OFFSET", "3"))


@dataclass(frozen=True)
class TracingConfig:
    """Tracing configuration."""

    SERVICE_NAME: str = "task-helper"
    OTLP_ENDPOINT: str = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
    ENABLED: bool = os.getenv("ENABLE_TRACING", "false").lower() == "true"


# Global singleton instances
TIMEOUTS = TimeoutConfig()
TRACKING = TrackingConfig()
TRACING = TracingConfig()


def default_store_path(base_dir: Optional[Union[str, Path]] = None) -> Path:
    """Return the persisted change store location.

    Args:
        base_dir: Directory the relative cache dir is anchored to (default: cwd)

    Returns:
        Absolute path of fileUpdates.json
    """
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    return (base / TRACKING.CACHE_DIR / TRACKING.PLUGIN_NAME / TRACKING.STORE_FILENAME).resolve()
