"""Configuration and logging."""

from .config import ConfigurationError, Settings, settings
from .logging_config import setup_logging, target_path_context

__all__ = [
    "ConfigurationError",
    "Settings",
    "settings",
    "setup_logging",
    "target_path_context",
]
