"""
Shared pytest fixtures for appchart tests.

This module provides:
- Settings isolated from ``APPCHART_*`` environment variables
- Sample application / environment specs
- A fixed clock for canary tests

Usage:
    Fixtures are auto-discovered by pytest; request them by argument name.
"""

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import structlog

# Ensure appchart package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from appchart.chart.models import (
    ApplicationSpec,
    DeploymentSpec,
    EnvironmentSpec,
    IngressControllerSpec,
    ProcessSpec,
)
from appchart.core.settings import AppChartSettings, get_settings


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Any:
    """Drop APPCHART_* variables and the cached settings around each test."""
    for name in list(os.environ):
        if name.startswith("APPCHART_"):
            monkeypatch.delenv(name)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_logging() -> Any:
    """Undo configure_logging so handlers never outlive a captured stream."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.basicConfig(force=True, handlers=[logging.NullHandler()])


@pytest.fixture
def settings() -> AppChartSettings:
    return AppChartSettings(_env_file=None)


# =============================================================================
# Specs
# =============================================================================


def make_deployment(version: int = 1, processes: dict[str, str] | None = None, **kwargs: Any) -> DeploymentSpec:
    """Deployment with one process per ``name → command`` entry."""
    processes = processes if processes is not None else {"web": "python app.py"}
    return DeploymentSpec(
        image=kwargs.pop("image", f"registry.example.com/shop:v{version}"),
        version=version,
        processes=[ProcessSpec(name=name, cmd=[cmd]) for name, cmd in processes.items()],
        **kwargs,
    )


def make_app(*deployments: DeploymentSpec, **kwargs: Any) -> ApplicationSpec:
    return ApplicationSpec(
        name=kwargs.pop("name", "shop"),
        deployments=list(deployments) or [make_deployment()],
        **kwargs,
    )


@pytest.fixture
def environment() -> EnvironmentSpec:
    return EnvironmentSpec(
        name="production",
        namespace="appchart-production",
        ingress_controller=IngressControllerSpec(
            class_name="traefik",
            service_endpoint="10.0.0.1",
            cluster_issuer="letsencrypt",
        ),
    )


@pytest.fixture
def app() -> ApplicationSpec:
    return make_app()


@pytest.fixture(name="make_app")
def make_app_fixture() -> Any:
    return make_app


@pytest.fixture(name="make_deployment")
def make_deployment_fixture() -> Any:
    return make_deployment


# =============================================================================
# Time
# =============================================================================


@pytest.fixture
def start_time() -> datetime:
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
