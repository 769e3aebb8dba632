"""Shared infrastructure for appchart: errors, logging and settings."""

from appchart.core.errors import (
    AppChartError,
    CanaryError,
    ConfigError,
    EmptyDefinitionError,
    ErrorCategory,
    ErrorContext,
    HealthcheckError,
    InstallError,
    MalformedMetadataKeyError,
    MissingClusterIssuerError,
    NotFoundError,
    PortsNotFoundError,
    TemplatesNotFoundError,
    ValidationError,
    categorize_error,
    is_retryable,
)
from appchart.core.logging import LogContext, configure_logging, get_logger
from appchart.core.settings import AppChartSettings, get_settings

__all__ = [
    "AppChartError",
    "AppChartSettings",
    "CanaryError",
    "ConfigError",
    "EmptyDefinitionError",
    "ErrorCategory",
    "ErrorContext",
    "HealthcheckError",
    "InstallError",
    "LogContext",
    "MalformedMetadataKeyError",
    "MissingClusterIssuerError",
    "NotFoundError",
    "PortsNotFoundError",
    "TemplatesNotFoundError",
    "ValidationError",
    "categorize_error",
    "configure_logging",
    "get_logger",
    "get_settings",
    "is_retryable",
]
