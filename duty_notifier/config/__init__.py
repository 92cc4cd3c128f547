"""Configuration management for the invigilation duty notifier."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_config_file, validate_config_file
from .models import (
    AdvancedConfig,
    AppConfig,
    EmailConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    MailTransportType,
    NoticeConfig,
    ScheduleConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "parse_config_file",
    "validate_config_file",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "NoticeConfig",
    "EmailConfig",
    "ScheduleConfig",
    "LoggingConfig",
    "AdvancedConfig",
    "EnvironmentConfig",
    # Enums
    "MailTransportType",
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
