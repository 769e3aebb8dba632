"""Fully-resolved process definitions.

A :class:`ProcessDefinition` is what the chart templates render one
Deployment + Service pair from. It is built by :func:`build_process` out of
the process spec, the deployment manifest and the application's metadata
rules, and is discarded once the values tree is handed to the installer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from appchart.chart.metadata import ProcessMetadata, resolve_process_metadata
from appchart.chart.models import (
    DEFAULT_NUMBER_OF_UNITS,
    ApplicationSpec,
    DeploymentSpec,
    Env,
    ProcessSpec,
)
from appchart.chart.ports import (
    ContainerPort,
    PortResolver,
    ServicePort,
    port_env_variables,
    public_service_port,
)
from appchart.chart.probes import Probes, resolve_command, resolve_lifecycle, resolve_probes
from appchart.core.errors import PortsNotFoundError


@dataclass
class PodExtra:
    """Pod-level fields copied into the rendered Deployment."""

    security_context: dict[str, Any] | None = None
    resource_requirements: dict[str, Any] | None = None
    volume_mounts: list[dict[str, Any]] = field(default_factory=list)
    readiness_probe: dict[str, Any] | None = None
    liveness_probe: dict[str, Any] | None = None
    startup_probe: dict[str, Any] | None = None
    lifecycle: dict[str, Any] | None = None

    def to_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, value in (
            ("securityContext", self.security_context),
            ("resourceRequirements", self.resource_requirements),
            ("volumeMounts", self.volume_mounts),
            ("readinessProbe", self.readiness_probe),
            ("livenessProbe", self.liveness_probe),
            ("startupProbe", self.startup_probe),
            ("lifecycle", self.lifecycle),
        ):
            if value:
                values[key] = value
        return values


@dataclass
class ProcessDefinition:
    name: str
    cmd: list[str]
    units: int = DEFAULT_NUMBER_OF_UNITS
    routable: bool = False
    container_ports: list[ContainerPort] = field(default_factory=list)
    service_ports: list[ServicePort] = field(default_factory=list)
    public_service_port: int | None = None
    env: list[Env] = field(default_factory=list)
    extra: PodExtra = field(default_factory=PodExtra)
    metadata: ProcessMetadata = field(default_factory=ProcessMetadata)

    def has_open_port(self) -> bool:
        return len(self.container_ports) > 0 and len(self.service_ports) > 0

    def to_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {
            "name": self.name,
            "cmd": list(self.cmd),
            "units": self.units,
            "routable": self.routable,
            "containerPorts": [port.to_values() for port in self.container_ports],
            "servicePorts": [port.to_values() for port in self.service_ports],
            "env": [env.model_dump() for env in self.env],
            "extra": self.extra.to_values(),
            "labels": self.metadata.labels.to_values(),
            "annotations": self.metadata.annotations.to_values(),
        }
        if self.public_service_port is not None:
            values["publicServicePort"] = self.public_service_port
        return values


def build_process(
    app: ApplicationSpec,
    deployment: DeploymentSpec,
    spec: ProcessSpec,
    *,
    routable: bool,
    ports: PortResolver,
) -> ProcessDefinition:
    """Resolve one process of a deployment.

    Raises:
        PortsNotFoundError: the process is routable but has no container
            port or no service port
        MalformedMetadataKeyError: a label/annotation rule has a bad key
        HealthcheckError: the legacy health check cannot be expressed
    """
    manifest = deployment.manifest
    hooks = manifest.hooks if manifest is not None else None
    healthcheck = manifest.healthcheck if manifest is not None else None

    process = ProcessDefinition(
        name=spec.name,
        cmd=resolve_command(spec.cmd, hooks),
        units=spec.units if spec.units is not None else DEFAULT_NUMBER_OF_UNITS,
        routable=routable,
        container_ports=ports.container_ports(spec.name),
        service_ports=ports.service_ports(spec.name),
    )
    process.public_service_port = public_service_port(process.service_ports)
    process.env = port_env_variables(process.name, process.container_ports) + list(spec.env)

    probe_port = (
        process.container_ports[0].container_port
        if process.container_ports
        else ports.settings.default_port
    )
    probes: Probes = resolve_probes(healthcheck, probe_port)
    process.extra = PodExtra(
        security_context=spec.security_context,
        resource_requirements=spec.resources,
        volume_mounts=list(spec.volume_mounts),
        readiness_probe=probes.readiness,
        liveness_probe=probes.liveness,
        startup_probe=probes.startup,
        lifecycle=resolve_lifecycle(hooks),
    )
    process.metadata = resolve_process_metadata(app, deployment.version, spec.name)

    if process.routable and not process.has_open_port():
        raise PortsNotFoundError().with_context(
            app=app.name, deployment_version=deployment.version, process=spec.name
        )
    return process


__all__ = ["PodExtra", "ProcessDefinition", "build_process"]
