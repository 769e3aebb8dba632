"""
Centralized settings for appchart.

Manifesto:
    The compiler's defaults (fallback container port, generated port names,
    the base domain of default hostnames, chart metadata) are operator
    choices, not code. ``AppChartSettings`` reads them once from
    ``APPCHART_*`` environment variables or a ``.env`` file and validates
    them; every resolver receives the same object.

Tags:
    appchart, configuration, settings, pydantic
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_APPLICATION_PORT = 8888
DEFAULT_PORT_NAME = "http-default"


class AppChartSettings(BaseSettings):
    """appchart configuration.

    All fields can be set via ``APPCHART_*`` environment variables (e.g.
    ``APPCHART_DEFAULT_PORT=8080``).
    """

    model_config = SettingsConfigDict(
        env_prefix="APPCHART_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Ports ────────────────────────────────────────────────────
    default_port: int = Field(
        default=DEFAULT_APPLICATION_PORT,
        gt=0,
        lt=65536,
        description="Port used when neither the process nor the image declares one",
    )
    default_port_name: str = Field(
        default=DEFAULT_PORT_NAME,
        min_length=1,
        description="Prefix of generated service port names (<prefix>-<index>)",
    )

    # ── Ingress ──────────────────────────────────────────────────
    base_domain: str = Field(
        default="shipa.cloud",
        description="Suffix of generated default domains (<app>.<endpoint>.<base_domain>)",
    )

    # ── Chart ────────────────────────────────────────────────────
    chart_version: str = Field(default="0.0.1")
    chart_description: str = Field(default="application chart")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO", pattern="(?i)^(debug|info|warning|error|critical)$")
    log_format: str = Field(default="console", pattern="^(json|console)$")


@lru_cache(maxsize=1)
def get_settings() -> AppChartSettings:
    """Return the process-wide settings instance."""
    return AppChartSettings()


__all__ = [
    "AppChartSettings",
    "DEFAULT_APPLICATION_PORT",
    "DEFAULT_PORT_NAME",
    "get_settings",
]
