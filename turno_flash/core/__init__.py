"""
Shared configuration and utilities.

Currently includes:
- Settings: environment-driven configuration (`get_settings`)
- Logging setup (`turno_flash.core.logging`)
- Timeout, retry and deferred helpers (`turno_flash.core.promise`)
- Inline form validation (`turno_flash.core.validation`)
"""

from .config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
