"""Configuration module for Invoicez."""

from invoicez.config.logging import configure_logging, get_logger
from invoicez.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging", "get_logger"]
