"""
appchart - Deployment specification compiler.

Compiles an application specification and its target environment into a
chart: a values tree plus templates ready for a Helm-style installer.

- appchart.core: Errors, logging, settings
- appchart.chart: Process files, ports, probes, metadata, ingress, compiler
- appchart.rollout: Canary stepping and per-app rollout cancellation
"""

__version__ = "0.1.0"

from appchart.chart import (  # noqa: E402
    ApplicationChart,
    ApplicationSpec,
    EnvironmentSpec,
    compile_application,
    deploy_application,
    parse_procfile,
)
from appchart.core import AppChartError, AppChartSettings, get_settings  # noqa: E402
from appchart.rollout import CanaryStepper, CancellationRegistry  # noqa: E402

__all__ = [
    "AppChartError",
    "AppChartSettings",
    "ApplicationChart",
    "ApplicationSpec",
    "CanaryStepper",
    "CancellationRegistry",
    "EnvironmentSpec",
    "compile_application",
    "deploy_application",
    "get_settings",
    "parse_procfile",
]
