"""Chart installation boundary.

The compiler never talks to a cluster. A :class:`ChartInstaller` receives the
compiled chart and its ``Chart.yaml`` config and materializes it (``helm
upgrade --install`` or an equivalent). :func:`deploy_application` is the
single call a reconciliation pass makes: fetch templates, compile, install.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from appchart.chart.compiler import ApplicationChart, ChartConfig, compile_application, new_chart_config
from appchart.chart.models import ApplicationSpec, EnvironmentSpec
from appchart.chart.templates import TemplateReader, ingress_templates_name
from appchart.core.errors import AppChartError, InstallError
from appchart.core.logging import get_logger
from appchart.core.settings import AppChartSettings, get_settings

logger = get_logger(__name__)


@runtime_checkable
class ChartInstaller(Protocol):
    def install(self, chart: ApplicationChart, config: ChartConfig) -> None:
        ...


class DirectoryInstaller:
    """Installs charts by exporting them under a root directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def install(self, chart: ApplicationChart, config: ChartConfig) -> None:
        chart.export_to_directory(self.root, config)


def deploy_application(
    app: ApplicationSpec,
    environment: EnvironmentSpec,
    reader: TemplateReader,
    installer: ChartInstaller,
    settings: AppChartSettings | None = None,
) -> ApplicationChart:
    """Compile an application with its environment's templates and install it.

    Raises:
        TemplatesNotFoundError: no template set for the ingress controller
        InstallError: the installer failed; the original error is the cause
        AppChartError: any compile failure, unchanged
    """
    settings = settings or get_settings()
    templates = reader.get(ingress_templates_name(environment.ingress_controller.type))
    chart = compile_application(app, environment, templates=templates, settings=settings)
    config = new_chart_config(app, settings)
    try:
        installer.install(chart, config)
    except AppChartError:
        raise
    except Exception as e:
        logger.warning("chart_install_failed", app=app.name, error=str(e))
        raise InstallError(f"failed to install chart {app.name!r}: {e}", cause=e).with_context(
            app=app.name
        ) from e
    logger.info("chart_installed", app=app.name, chart_version=config.chart_version)
    return chart


__all__ = ["ChartInstaller", "DirectoryInstaller", "deploy_application"]
