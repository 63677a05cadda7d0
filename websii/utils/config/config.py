"""
Configuration System for Websii

This module provides a layered configuration system that:
1. Loads configuration from YAML files
2. Supports environment variable overrides (optionally from a .env file)
3. Validates configuration values
4. Provides defaults for missing values

Configuration is loaded in the following order of precedence:
1. Environment variables (highest priority)
2. Local configuration override (config/local_config.yaml)
3. Environment-specific config file (e.g., config/production.yaml)
4. Base configuration file (config/config.yaml)
5. Default values (lowest priority)
"""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

# Configuration paths, relative to the working directory
CONFIG_DIR = Path("config")
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"
LOCAL_CONFIG_PATH = CONFIG_DIR / "local_config.yaml"

# Environment variable prefix and nesting separator for config overrides
ENV_PREFIX = "WEBSII_"
ENV_SEPARATOR = "__"

DEFAULT_CONFIG = {
    "environment": "development",
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
        "threads": 32,
        "reserved_threads": 4,
        "channel_timeout": 120,
        "channel_request_lookahead": 1,
    },
    "control": {
        "paths": ["/control", "/__control__"],
        "stop_grace_seconds": 1.0,
    },
    "reload": {
        "stream_path": "/__reload__",
        "keepalive_interval": 15,
        "poll_interval": 1,
        "debounce_ms": 100,
        "subscriber_queue_size": 16,
        "fallback_reload_ms": 5000,
    },
    "watcher": {
        "retry_interval": 5,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "json": False,
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "max_size": 10 * 1024 * 1024,  # 10MB
        "backup_count": 5,
    },
}


def _parse_value(value: str) -> Any:
    """Convert string value to appropriate Python type."""
    if value.lower() in ["true", "yes", "on"]:
        return True
    if value.lower() in ["false", "no", "off"]:
        return False

    if value.lower() in ["none", "null"]:
        return None

    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value


def _deep_update(base_dict: Dict, update_dict: Dict) -> Dict:
    """Recursively update a nested dictionary with another dictionary."""
    for key, value in update_dict.items():
        if isinstance(value, dict) and key in base_dict and isinstance(base_dict[key], dict):
            base_dict[key] = _deep_update(base_dict[key], value)
        else:
            base_dict[key] = value
    return base_dict


def _load_yaml_config(file_path: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration from a YAML file."""
    file_path = Path(file_path)
    if not file_path.exists():
        logger.debug(f"Config file {file_path} not found")
        return {}

    try:
        with open(file_path, 'r') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error loading config from {file_path}: {str(e)}")
        return {}

    if not isinstance(config, dict):
        logger.warning(f"Ignoring config file {file_path}: top level is not a mapping")
        return {}

    logger.debug(f"Loaded configuration from {file_path}")
    return config


def _get_env_overrides() -> Dict[str, Any]:
    """Get configuration overrides from environment variables."""
    result = {}
    pattern = re.compile(f"^{ENV_PREFIX}(.+)$")

    for env_var, value in os.environ.items():
        match = pattern.match(env_var)
        if not match:
            continue

        # e.g., WEBSII_RELOAD__KEEPALIVE_INTERVAL -> {"reload": {"keepalive_interval": value}}
        path = [part for part in match.group(1).lower().split(ENV_SEPARATOR) if part]
        if not path:
            continue
        current = result

        for part in path[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[path[-1]] = _parse_value(value)

    return result


def load_config(config_path: Optional[Union[str, Path]] = None,
                environment: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the configuration from files and environment variables.

    Args:
        config_path: Path to the base configuration file, defaults to config/config.yaml
        environment: The environment to use (development, production, ...)
                     If None, will be read from WEBSII_ENVIRONMENT or the config files

    Returns:
        Dict containing the complete configuration
    """
    load_dotenv(find_dotenv(usecwd=True))

    config = copy.deepcopy(DEFAULT_CONFIG)

    base_config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    config = _deep_update(config, _load_yaml_config(base_config_path))

    env_overrides = _get_env_overrides()

    if environment is None:
        environment = env_overrides.get("environment", config.get("environment", "development"))

    env_config_path = base_config_path.parent / f"{environment}.yaml"
    config = _deep_update(config, _load_yaml_config(env_config_path))

    config = _deep_update(config, _load_yaml_config(LOCAL_CONFIG_PATH))

    config = _deep_update(config, env_overrides)

    config["environment"] = environment

    logger.debug(f"Configuration loaded for environment: {environment}")
    return config


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate the configuration to ensure all values are usable.

    Args:
        config: The configuration dictionary to validate

    Returns:
        bool: True if the configuration is valid, False otherwise
    """
    valid = True

    server = config.get("server", {})
    port = server.get("port")
    if not isinstance(port, int) or not (0 <= port <= 65535):
        logger.error(f"Invalid server port: {port}. Must be between 0 and 65535.")
        valid = False
    threads = server.get("threads")
    if not isinstance(threads, int) or threads < 1:
        logger.error(f"Invalid server thread count: {threads}")
        valid = False
    reserved = server.get("reserved_threads", 0)
    if not isinstance(reserved, int) or reserved < 0 or (isinstance(threads, int) and reserved >= threads):
        logger.error(f"Invalid server.reserved_threads: {reserved}. Must be between 0 and threads - 1.")
        valid = False
    lookahead = server.get("channel_request_lookahead", 0)
    if not isinstance(lookahead, int) or lookahead < 0:
        logger.error(f"Invalid server.channel_request_lookahead: {lookahead}")
        valid = False

    reload_config = config.get("reload", {})
    for key in ("keepalive_interval", "poll_interval", "fallback_reload_ms", "subscriber_queue_size"):
        value = reload_config.get(key)
        if not isinstance(value, (int, float)) or value <= 0:
            logger.error(f"Invalid reload.{key}: {value}. Must be positive.")
            valid = False
    debounce = reload_config.get("debounce_ms")
    if not isinstance(debounce, (int, float)) or debounce < 0:
        logger.error(f"Invalid reload.debounce_ms: {debounce}")
        valid = False

    stream_path = reload_config.get("stream_path", "")
    if not isinstance(stream_path, str) or not stream_path.startswith("/"):
        logger.error(f"Invalid reload.stream_path: {stream_path!r}. Must start with '/'.")
        valid = False

    control_paths = config.get("control", {}).get("paths", [])
    if isinstance(control_paths, str):
        control_paths = [control_paths]
    for path in control_paths:
        if not isinstance(path, str) or not path.startswith("/"):
            logger.error(f"Invalid control path: {path!r}. Must start with '/'.")
            valid = False
        elif path == stream_path:
            logger.error(f"Control path {path} collides with the reload stream path")
            valid = False

    retry = config.get("watcher", {}).get("retry_interval")
    if not isinstance(retry, (int, float)) or retry <= 0:
        logger.error(f"Invalid watcher.retry_interval: {retry}. Must be positive.")
        valid = False

    return valid
