"""Configuration module for the lead workflow service."""

from .database import DatabaseSettings, get_database_settings
from .settings import AuthSettings, Settings, get_settings
from .logging_config import configure_logging, get_logger

__all__ = [
    "DatabaseSettings",
    "get_database_settings",
    "AuthSettings",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
]
