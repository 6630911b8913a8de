"""Configuration for dinequery."""

from dinequery.config.logging import configure_logging, get_logger
from dinequery.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging", "get_logger"]
