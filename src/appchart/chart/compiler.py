"""Deployment specification compiler.

Turns an ``ApplicationSpec`` + ``EnvironmentSpec`` pair into an
:class:`ApplicationChart`: a values tree plus the template set the installer
renders it with.

Why This Matters:
    The reconciliation driver calls the compiler on every pass. Compilation
    is a pure function of its inputs: no I/O, no clock, no randomness. Two
    passes over the same specs produce byte-identical ``values.yaml``, so
    the installer can skip no-op upgrades, and a failing spec fails the same
    way every time with nothing half-applied.

Key Concepts:
    compile_application: Entry point. Per deployment, parses the process
        set, resolves ports/probes/hooks/metadata per process, then resolves
        ingress and accessibility for the whole application.
    ApplicationChart: Values tree + templates. Serializes to
        ``values.yaml``, ``Chart.yaml`` and ``templates/*``.
    ChartConfig: Data for ``Chart.yaml`` (name, chart version, app version,
        description).

Architecture::

    ApplicationSpec ──┐
                      ├─► validate metadata rules (all-or-nothing)
    EnvironmentSpec ──┤
                      ├─► resolve_ingress ───────────────────────┐
                      └─► for each deployment:                   │
                            procfile_from_processes              │
                            PortResolver(manifest, exposed)      │
                            for each process: build_process      │
                                                                 ▼
                                          ApplicationChart(values, templates)

Failure modes:
    EmptyDefinitionError, MalformedMetadataKeyError, PortsNotFoundError,
    MissingClusterIssuerError, HealthcheckError. All are raised before any
    value leaves the call.

Tags:
    compiler, chart, helm, values, deployment
"""

from __future__ import annotations

import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from appchart.chart.ingress import Ingress, resolve_ingress
from appchart.chart.metadata import validate_application_metadata
from appchart.chart.models import (
    ApplicationSpec,
    DeploymentSpec,
    DeploymentVersion,
    EnvironmentSpec,
    ExposedPort,
)
from appchart.chart.ports import PortResolver
from appchart.chart.process import ProcessDefinition, build_process
from appchart.chart.procfile import procfile_from_processes
from appchart.chart.templates import TemplateSet
from appchart.core.errors import EmptyDefinitionError
from appchart.core.logging import LogContext, get_logger
from appchart.core.settings import AppChartSettings, get_settings

logger = get_logger(__name__)


def _yaml_dumps(data: Mapping[str, Any]) -> str:
    return yaml.safe_dump(dict(data), default_flow_style=False, sort_keys=False, allow_unicode=True)


# ---------------------------------------------------------------------------
# Chart.yaml
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChartConfig:
    """Data used to render a chart's ``Chart.yaml``."""

    app_name: str
    chart_version: str
    app_version: str = ""
    description: str = "application chart"

    def render(self) -> str:
        chart: dict[str, Any] = {
            "apiVersion": "v2",
            "name": self.app_name,
            "description": self.description,
            "type": "application",
            "version": self.chart_version,
        }
        if self.app_version:
            chart["appVersion"] = self.app_version
        return _yaml_dumps(chart)


def new_chart_config(app: ApplicationSpec, settings: AppChartSettings | None = None) -> ChartConfig:
    """Chart config of an application; the chart version comes from settings."""
    settings = settings or get_settings()
    return ChartConfig(
        app_name=app.name,
        chart_version=settings.chart_version,
        app_version=app.version or "",
        description=app.description or settings.chart_description,
    )


# ---------------------------------------------------------------------------
# Values tree
# ---------------------------------------------------------------------------


@dataclass
class CompiledDeployment:
    image: str
    version: DeploymentVersion
    processes: list[ProcessDefinition] = field(default_factory=list)
    labels: list[dict[str, str]] = field(default_factory=list)
    weight: int = 0
    volumes: list[dict[str, Any]] = field(default_factory=list)
    image_pull_secrets: list[str] = field(default_factory=list)

    def routable_process(self) -> ProcessDefinition | None:
        for process in self.processes:
            if process.routable:
                return process
        return None

    def to_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {
            "image": self.image,
            "version": self.version,
            "processes": [process.to_values() for process in self.processes],
            "labels": list(self.labels),
            "routingSettings": {"weight": self.weight},
            "extra": {"volumes": list(self.volumes)} if self.volumes else {},
        }
        if self.image_pull_secrets:
            values["imagePullSecrets"] = [{"name": name} for name in self.image_pull_secrets]
        return values


@dataclass
class ApplicationChart:
    """Compiled application: values tree plus templates."""

    app: ApplicationSpec
    environment: EnvironmentSpec
    deployments: list[CompiledDeployment]
    ingress: Ingress
    templates: dict[str, str] = field(default_factory=dict)

    @property
    def app_name(self) -> str:
        return self.app.name

    @property
    def is_accessible(self) -> bool:
        """Whether ingress objects can be rendered: an entrypoint and a routable process."""
        if not self.ingress.http and not self.ingress.https:
            return False
        return any(deployment.routable_process() is not None for deployment in self.deployments)

    def values_dict(self) -> dict[str, Any]:
        controller = self.environment.ingress_controller
        return {
            "app": {
                "name": self.app.name,
                "id": self.app.id or self.app.name,
                "deployments": [deployment.to_values() for deployment in self.deployments],
                "env": [env.model_dump() for env in self.app.env],
                "ingress": self.ingress.to_values(),
                "isAccessible": self.is_accessible,
                "serviceAccountName": self.app.service_account_name,
            },
            "dockerRegistry": {"imagePullSecret": self.app.docker_registry_secret},
            "ingressController": {
                "className": controller.class_name,
                "serviceEndpoint": controller.service_endpoint,
                "type": controller.type.value,
                "clusterIssuer": controller.cluster_issuer,
            },
        }

    def values_yaml(self) -> str:
        return _yaml_dumps(self.values_dict())

    def buffered_files(self, config: ChartConfig) -> dict[str, bytes]:
        """Chart files keyed by path relative to the chart root."""
        files = {
            f"templates/{name}": content.encode("utf-8")
            for name, content in sorted(self.templates.items())
        }
        files["values.yaml"] = self.values_yaml().encode("utf-8")
        files["Chart.yaml"] = config.render().encode("utf-8")
        return files

    def export_to_directory(self, directory: Path | str, config: ChartConfig) -> Path:
        """Write the chart to ``<directory>/<app name>/``, replacing any previous export."""
        chart_dir = Path(directory) / config.app_name
        if chart_dir.exists():
            shutil.rmtree(chart_dir)
        (chart_dir / "templates").mkdir(parents=True)
        for relative, content in self.buffered_files(config).items():
            (chart_dir / relative).write_bytes(content)
        logger.info("chart_exported", app=config.app_name, path=str(chart_dir))
        return chart_dir


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def compile_deployment(
    app: ApplicationSpec,
    deployment: DeploymentSpec,
    exposed_ports: Sequence[ExposedPort],
    settings: AppChartSettings,
) -> CompiledDeployment:
    try:
        procfile = procfile_from_processes(deployment.processes)
    except EmptyDefinitionError as e:
        raise e.with_context(app=app.name, deployment_version=deployment.version)

    ports = PortResolver(deployment.manifest, exposed_ports, settings)
    compiled = CompiledDeployment(
        image=deployment.image,
        version=deployment.version,
        labels=[label.model_dump() for label in deployment.labels],
        weight=deployment.routing_settings.weight,
        image_pull_secrets=list(deployment.image_pull_secrets),
    )
    for spec in deployment.processes:
        compiled.processes.append(
            build_process(
                app,
                deployment,
                spec,
                routable=procfile.is_routable(spec.name),
                ports=ports,
            )
        )
        compiled.volumes.extend(spec.volumes)
    return compiled


def compile_application(
    app: ApplicationSpec,
    environment: EnvironmentSpec,
    *,
    templates: TemplateSet | None = None,
    exposed_ports: Mapping[DeploymentVersion, Sequence[ExposedPort]] | None = None,
    settings: AppChartSettings | None = None,
) -> ApplicationChart:
    """Compile an application for an environment.

    Args:
        app: Application specification; not modified
        environment: Target environment; not modified
        templates: Template set copied verbatim into the chart
        exposed_ports: Image ports per deployment version, overriding
            ``DeploymentSpec.exposed_ports`` (e.g. from image inspection)
        settings: Defaults source, ``get_settings()`` when omitted

    Raises:
        EmptyDefinitionError: a deployment has no process
        MalformedMetadataKeyError: a label/annotation rule has a bad key
        PortsNotFoundError: a routable process resolves no port
        MissingClusterIssuerError: a secure domain without a cluster issuer
    """
    settings = settings or get_settings()
    with LogContext(app=app.name, environment=environment.name):
        validate_application_metadata(app)
        ingress = resolve_ingress(app, environment, settings)

        deployments = []
        for deployment in app.deployments:
            ports = deployment.exposed_ports
            if exposed_ports is not None and deployment.version in exposed_ports:
                ports = list(exposed_ports[deployment.version])
            deployments.append(compile_deployment(app, deployment, ports, settings))

        chart = ApplicationChart(
            app=app,
            environment=environment,
            deployments=deployments,
            ingress=ingress,
            templates=dict(templates.yamls) if templates is not None else {},
        )
        logger.debug(
            "application_compiled",
            deployments=len(deployments),
            processes=sum(len(d.processes) for d in deployments),
            accessible=chart.is_accessible,
        )
    return chart


__all__ = [
    "ApplicationChart",
    "ChartConfig",
    "CompiledDeployment",
    "compile_application",
    "compile_deployment",
    "new_chart_config",
]
