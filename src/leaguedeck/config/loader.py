"""
Configuration loader for leaguedeck
"""

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Maximum config file size (1MB should be plenty for YAML configs)
MAX_CONFIG_SIZE = 1024 * 1024

DEFAULT_STATE_FILE = "~/.leaguedeck/plugin-state.json"


@dataclass(frozen=True)
class EndpointConfig:
    """One polled LCU endpoint."""

    path: str
    interval: float
    logical_type: str
    suppress_errors: bool = False


DEFAULT_ENDPOINTS = [
    EndpointConfig("/lol-summoner/v1/current-summoner", 5.0, "summoner"),
    EndpointConfig("/lol-gameflow/v1/gameflow-phase", 2.0, "gameflow"),
    # Only answers during champion select
    EndpointConfig("/lol-champ-select/v1/session", 1.0, "champselect", suppress_errors=True),
    EndpointConfig("/lol-ranked/v1/current-ranked-stats", 5.0, "ranked"),
    EndpointConfig("/lol-inventory/v1/wallet", 10.0, "wallet", suppress_errors=True),
]

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "league": {
        "process_check_interval": 3.0,
        "reconnect_delay": 2.0,
        "max_reconnect_attempts": 5,
        "request_timeout": 5.0,
        "lockfile": None,
    },
    "live_game": {
        "interval": 3.0,
        "timeout": 2.0,
    },
    "rendering": {
        "throttle_interval": 0.1,
        "max_retries": 3,
        "retry_delay": 1.0,
        "cleanup_interval": 5.0,
        "stale_render_age": 300.0,
    },
    "state": {
        "file": DEFAULT_STATE_FILE,
        "auto_save_interval": 30.0,
        "max_cache_age": 300.0,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}

# Keys that must hold positive numbers
_POSITIVE_NUMBERS = {
    "league": ("process_check_interval", "reconnect_delay", "request_timeout"),
    "live_game": ("interval", "timeout"),
    "rendering": ("throttle_interval", "retry_delay", "cleanup_interval", "stale_render_age"),
    "state": ("auto_save_interval", "max_cache_age"),
}

_NON_NEGATIVE_INTEGERS = {
    "league": ("max_reconnect_attempts",),
    "rendering": ("max_retries",),
}


def _is_positive_number(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and value > 0


class ConfigLoader:
    """Loads and validates YAML configuration files"""

    def load(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Validated configuration dictionary with defaults applied

        Raises:
            ConfigurationError: If the file is missing, unreadable, too large
                or structurally invalid
        """
        resolved_path = Path(config_path).expanduser().resolve()

        self._validate_config_path(resolved_path)

        if not resolved_path.exists():
            raise ConfigurationError(f"Configuration file not found: {resolved_path}")

        file_size = resolved_path.stat().st_size
        if file_size > MAX_CONFIG_SIZE:
            raise ConfigurationError(
                f"Configuration file too large: {file_size} bytes "
                f"(maximum {MAX_CONFIG_SIZE} bytes)"
            )

        try:
            with open(resolved_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {e}") from e

        # An empty file means "all defaults"
        if config is None:
            config = {}

        self._validate(config)
        config = self._apply_defaults(config)

        logger.info(f"Loaded configuration from {resolved_path}")
        return config

    def defaults(self) -> Dict[str, Any]:
        """Configuration used when no file is given."""
        return self._apply_defaults({})

    def _validate_config_path(self, config_path: Path) -> None:
        if config_path.is_dir():
            raise ConfigurationError(f"Path is a directory, not a file: {config_path}")

        if config_path.suffix.lower() not in [".yaml", ".yml"]:
            logger.warning(
                f"Configuration file has unexpected extension: {config_path.suffix}. "
                f"Expected .yaml or .yml"
            )

        logger.debug(f"Configuration path validated: {config_path}")

    def _validate(self, config: Any) -> None:
        """Validate configuration structure"""
        if not isinstance(config, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        for section, value in config.items():
            if section not in DEFAULTS:
                logger.warning(f"Unknown configuration section '{section}' ignored")
                continue
            if not isinstance(value, dict):
                raise ConfigurationError(f"Section '{section}' must be a dictionary")

        for section, keys in _POSITIVE_NUMBERS.items():
            for key in keys:
                value = config.get(section, {}).get(key)
                if value is None:
                    continue
                if not _is_positive_number(value):
                    raise ConfigurationError(f"'{section}.{key}' must be a positive number")

        for section, keys in _NON_NEGATIVE_INTEGERS.items():
            for key in keys:
                value = config.get(section, {}).get(key)
                if value is None:
                    continue
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise ConfigurationError(f"'{section}.{key}' must be a non-negative integer")

        endpoints = config.get("league", {}).get("endpoints")
        if endpoints is not None:
            self._validate_endpoints(endpoints)

    def _validate_endpoints(self, endpoints: Any) -> None:
        if not isinstance(endpoints, list) or not endpoints:
            raise ConfigurationError("'league.endpoints' must be a non-empty list")

        seen_types = set()
        for index, endpoint in enumerate(endpoints):
            if not isinstance(endpoint, dict):
                raise ConfigurationError(f"Endpoint #{index} must be a dictionary")
            for key in ("path", "interval", "type"):
                if key not in endpoint:
                    raise ConfigurationError(f"Endpoint #{index} is missing '{key}'")
            if not str(endpoint["path"]).startswith("/"):
                raise ConfigurationError(f"Endpoint #{index} path must start with '/'")
            interval = endpoint["interval"]
            if not _is_positive_number(interval):
                raise ConfigurationError(f"Endpoint #{index} interval must be a positive number")
            if endpoint["type"] in seen_types:
                raise ConfigurationError(f"Duplicate endpoint type '{endpoint['type']}'")
            seen_types.add(endpoint["type"])

    def _apply_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply default values to configuration"""
        merged = copy.deepcopy(DEFAULTS)
        for section, values in config.items():
            if section in merged:
                merged[section].update(values)
        return merged


def endpoint_configs(config: Optional[Dict[str, Any]] = None) -> List[EndpointConfig]:
    """
    Build the EndpointConfig list for a loaded configuration.

    Falls back to the built-in endpoint table when the configuration does
    not override it.
    """
    endpoints = (config or {}).get("league", {}).get("endpoints")
    if not endpoints:
        return list(DEFAULT_ENDPOINTS)

    return [
        EndpointConfig(
            path=endpoint["path"],
            interval=float(endpoint["interval"]),
            logical_type=endpoint["type"],
            suppress_errors=bool(endpoint.get("suppress_errors", False)),
        )
        for endpoint in endpoints
    ]
