"""
ModMail Bot - Core Package
==========================

Configuration, logging, constants and the health endpoint.

DESIGN:
    Core modules are singletons or global instances so every module sees
    the same state:
    - get_config() returns the same Config instance
    - logger is a global TreeLogger instance
"""

# =============================================================================
# Core Imports
# =============================================================================

from .config import (
    Config,
    ConfigValidationError,
    EmbedColors,
    NY_TZ,
    get_config,
    has_staff_permission,
)

from .logger import logger, TreeLogger

from .health import HealthCheckServer


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    # Config
    "Config",
    "ConfigValidationError",
    "EmbedColors",
    "NY_TZ",
    "get_config",
    "has_staff_permission",
    # Logger
    "logger",
    "TreeLogger",
    # Health
    "HealthCheckServer",
]
