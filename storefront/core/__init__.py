"""
Core module initialization.
Exports configuration and logging utilities.
"""

from storefront.core.config import (
    get_settings,
    get_logger,
    setup_logging,
    Settings,
    EnvironmentMode,
)

__all__ = ["get_settings", "get_logger", "setup_logging", "Settings", "EnvironmentMode"]
