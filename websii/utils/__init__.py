"""
Utilities package for Websii.

- logging_config: configuring logging throughout the application
- config: layered YAML/environment configuration
"""

from .logging_config import configure_logging, configure_from_config, get_logger

__all__ = [
    'configure_logging',
    'configure_from_config',
    'get_logger',
]
