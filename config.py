#!/usr/bin/env python3
"""
Central runtime configuration defaults for the flow container reaper.

Values come from the environment first and can be overridden by an optional
YAML file. Bad values never abort startup: they are logged and the
documented default is used instead.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL_MINUTES = 10
# Negative means "no limit": running flows are never considered stale.
DEFAULT_MAX_FLOW_RUNNING_MINUTES = -1
DEFAULT_SHUTDOWN_GRACE_SECONDS = 30
DEFAULT_DEV_POD_GRACE_HOURS = 48


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using default {default}")
        return default


# Reaper cadence
STALE_EXECUTION_CLEANUP_INTERVAL_MINUTES = _env_int(
    "STALE_EXECUTION_CLEANUP_INTERVAL_MINUTES", DEFAULT_CLEANUP_INTERVAL_MINUTES
)
MAX_FLOW_RUNNING_MINUTES = _env_int("MAX_FLOW_RUNNING_MINUTES", DEFAULT_MAX_FLOW_RUNNING_MINUTES)
REAPER_SHUTDOWN_GRACE_SECONDS = _env_int("REAPER_SHUTDOWN_GRACE_SECONDS", DEFAULT_SHUTDOWN_GRACE_SECONDS)
DEV_POD_GRACE_HOURS = _env_int("DEV_POD_GRACE_HOURS", DEFAULT_DEV_POD_GRACE_HOURS)

# Kubernetes connectivity
KUBECONFIG = os.getenv("KUBECONFIG")
FLOW_CONTAINER_NAMESPACE = os.getenv("FLOW_CONTAINER_NAMESPACE", "default")
FLOW_CONTAINER_POD_PREFIX = os.getenv("FLOW_CONTAINER_POD_PREFIX", "fc-dep")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE")


@dataclass
class ReaperSettings:
    """Resolved settings for the reaper and its Kubernetes adapters."""
    cleanup_interval_minutes: int = STALE_EXECUTION_CLEANUP_INTERVAL_MINUTES
    max_flow_running_minutes: int = MAX_FLOW_RUNNING_MINUTES
    shutdown_grace_seconds: int = REAPER_SHUTDOWN_GRACE_SECONDS
    dev_pod_grace_hours: int = DEV_POD_GRACE_HOURS
    namespace: str = FLOW_CONTAINER_NAMESPACE
    pod_prefix: str = FLOW_CONTAINER_POD_PREFIX
    kubeconfig_path: Optional[str] = KUBECONFIG
    log_level: str = LOG_LEVEL
    log_file: Optional[str] = LOG_FILE
    # status name -> window in minutes, layered over the built-in table
    staleness_windows: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cleanup_interval_minutes": self.cleanup_interval_minutes,
            "max_flow_running_minutes": self.max_flow_running_minutes,
            "shutdown_grace_seconds": self.shutdown_grace_seconds,
            "dev_pod_grace_hours": self.dev_pod_grace_hours,
            "namespace": self.namespace,
            "pod_prefix": self.pod_prefix,
            "kubeconfig_path": self.kubeconfig_path,
            "log_level": self.log_level,
            "log_file": self.log_file,
            "staleness_windows": dict(self.staleness_windows),
        }


_INT_KEYS = (
    "cleanup_interval_minutes",
    "max_flow_running_minutes",
    "shutdown_grace_seconds",
    "dev_pod_grace_hours",
)
_STR_KEYS = ("namespace", "pod_prefix", "kubeconfig_path", "log_level", "log_file")


def _coerce_int(key: str, value: Any, default: int) -> int:
    if isinstance(value, bool):
        logger.warning(f"Invalid value for {key}: {value!r}, using default {default}")
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid value for {key}: {value!r}, using default {default}")
        return default


def _read_yaml(config_file: str) -> Dict[str, Any]:
    try:
        with open(config_file, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning(f"Config file {config_file} not found, using defaults")
        return {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not read config file {config_file}: {e}. Using defaults")
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Config file {config_file} must contain a mapping, using defaults")
        return {}
    return data


def load_settings(config_file: Optional[str] = None) -> ReaperSettings:
    """Build settings from environment defaults plus an optional YAML file."""
    settings = ReaperSettings()
    if not config_file:
        return settings

    data = _read_yaml(config_file)
    for key in _INT_KEYS:
        if key in data:
            setattr(settings, key, _coerce_int(key, data[key], getattr(settings, key)))
    for key in _STR_KEYS:
        if key in data and data[key] is not None:
            setattr(settings, key, str(data[key]))

    windows = data.get("staleness_windows")
    if windows is not None:
        if not isinstance(windows, dict):
            logger.warning("staleness_windows must be a mapping of status -> minutes, ignoring")
        else:
            for status_name, minutes in windows.items():
                try:
                    settings.staleness_windows[str(status_name).upper()] = int(minutes)
                except (TypeError, ValueError):
                    logger.warning(f"Invalid staleness window for {status_name}: {minutes!r}, ignoring")

    if settings.cleanup_interval_minutes <= 0:
        logger.warning(
            f"cleanup_interval_minutes must be positive, got {settings.cleanup_interval_minutes}. "
            f"Using default {DEFAULT_CLEANUP_INTERVAL_MINUTES}"
        )
        settings.cleanup_interval_minutes = DEFAULT_CLEANUP_INTERVAL_MINUTES

    return settings
