"""
Configuration module for Websii.

This module provides access to the layered configuration system.
"""

import copy
import logging
from typing import Any, Dict, Optional

from .config import (
    load_config,
    validate_config,
    DEFAULT_CONFIG,
    ENV_PREFIX,
)

logger = logging.getLogger(__name__)

# Global configuration singleton
_CONFIG = None


def get_config(config_path: Optional[str] = None, force_reload: bool = False) -> Dict[str, Any]:
    """
    Get the configuration singleton, loading it if not already loaded.

    Args:
        config_path: Optional path to the configuration file
        force_reload: Whether to force a reload even if config is already loaded

    Returns:
        Dict containing the complete configuration
    """
    global _CONFIG

    if _CONFIG is None or force_reload:
        try:
            _CONFIG = load_config(config_path)
            if not validate_config(_CONFIG):
                logger.warning("Configuration validation failed, some features may not work correctly")
        except Exception as e:
            logger.error(f"Error loading configuration: {str(e)}")
            _CONFIG = copy.deepcopy(DEFAULT_CONFIG)
            _CONFIG["_error"] = str(e)

    return _CONFIG


__all__ = [
    'load_config', 'validate_config', 'DEFAULT_CONFIG', 'ENV_PREFIX',
    'get_config',
]
