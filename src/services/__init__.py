"""
Services for configuration and logging.
"""

from .config_service import ConfigService, AppConfig, ProcessorConfig, LoggingConfig
from .logging_service import LoggingService

__all__ = ["ConfigService", "AppConfig", "ProcessorConfig", "LoggingConfig", "LoggingService"]
