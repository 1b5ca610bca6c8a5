"""
Configuration management for spikepipe.

A run is configured by one YAML file with three sections: ``execution``
(engine parameters), ``logging`` and ``experiment`` (pipeline and output
taps, read by ``spikepipe.experiment.build_experiment``). Command-line
values are merged on top of the file.

Example:
    >>> from spikepipe.config import load_config, get_execution_params
    >>>
    >>> # Load from default location
    >>> config = load_config()
    >>>
    >>> # Load from specific file with overrides
    >>> config = load_config(
    ...     "configs/config.yaml",
    ...     overrides={"execution": {"num_workers": 4}},
    ... )
    >>> params = get_execution_params(config)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


# configs/config.yaml next to the package
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "config.yaml"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""
    pass


class ConfigFileNotFoundError(ConfigError):
    """Raised when a configuration file is not found."""
    pass


class ConfigValidationError(ConfigError):
    """Raised when a section holds an invalid value."""
    pass


# =============================================================================
# CONFIG LOADING
# =============================================================================


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a run configuration.

    An empty file is an empty configuration.

    Raises:
        ConfigFileNotFoundError: If the file doesn't exist.
        ConfigError: If the YAML is malformed or its top level is not a mapping.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigFileNotFoundError(f"Config file not found: {path}")

    try:
        config = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML file {path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Top level of {path} must be a mapping, got {type(config).__name__}")
    return config


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` with ``override`` applied; nested sections merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = merge_configs(current, value)
        merged[key] = value
    return merged


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Load a run configuration.

    Args:
        path: Config file. Defaults to ``DEFAULT_CONFIG_PATH``.
        overrides: Values merged on top of the file, e.g. from the CLI.

    Returns:
        Complete configuration dictionary.
    """
    config = load_yaml(DEFAULT_CONFIG_PATH if path is None else path)
    if overrides:
        config = merge_configs(config, overrides)
    return config


# =============================================================================
# CONFIG DATACLASSES
# =============================================================================


@dataclass
class ExecutionParams:
    """Engine parameters."""
    refresh_interval: Optional[int] = 10000  # refresh() every N samples, None = never
    num_workers: int = 1                # >1 parallelises test passes and tap snapshots
    validate_every_pass: bool = False   # shape check on every train pass, not only the last
    reuse_buffers: bool = True          # dense scratch buffer reuse in the pass loop
    max_consecutive_failures: int = 100 # abandon a source after N failing entries in a row
    sparse_default: float = 0.0         # value left implicit in sparse storage

    def validate(self) -> None:
        """Validate parameters."""
        if self.refresh_interval is not None and self.refresh_interval < 1:
            raise ConfigValidationError(
                f"refresh_interval must be >= 1 or null, got {self.refresh_interval}"
            )
        if self.num_workers < 1:
            raise ConfigValidationError(f"num_workers must be >= 1, got {self.num_workers}")
        if self.max_consecutive_failures < 1:
            raise ConfigValidationError(
                f"max_consecutive_failures must be >= 1, got {self.max_consecutive_failures}"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ExecutionParams":
        """Create from dictionary."""
        params = cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})
        params.validate()
        return params


@dataclass
class LoggingParams:
    """Logging parameters."""
    log_level: str = "INFO"
    log_dir: Optional[str] = None  # None = console only
    color: bool = True

    def validate(self) -> None:
        """Validate parameters."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level.upper() not in valid:
            raise ConfigValidationError(
                f"log_level must be one of {sorted(valid)}, got '{self.log_level}'"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LoggingParams":
        """Create from dictionary."""
        params = cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})
        params.validate()
        return params


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def get_execution_params(config: Optional[Dict[str, Any]] = None) -> ExecutionParams:
    """
    Get execution parameters from config.

    Args:
        config: Config dict. If None, loads default.

    Returns:
        ExecutionParams instance.
    """
    if config is None:
        config = load_config()
    return ExecutionParams.from_dict(config.get("execution") or {})


def get_logging_params(config: Optional[Dict[str, Any]] = None) -> LoggingParams:
    """
    Get logging parameters from config.

    Args:
        config: Config dict. If None, loads default.

    Returns:
        LoggingParams instance.
    """
    if config is None:
        config = load_config()
    return LoggingParams.from_dict(config.get("logging") or {})


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigValidationError",
    # Paths
    "DEFAULT_CONFIG_PATH",
    # Loading
    "load_yaml",
    "merge_configs",
    "load_config",
    # Dataclasses
    "ExecutionParams",
    "LoggingParams",
    # Convenience
    "get_execution_params",
    "get_logging_params",
]
