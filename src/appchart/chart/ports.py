"""Container and service port resolution.

Each process gets a list of port entries, either configured explicitly in
the deployment manifest or synthesized from the ports the image exposes.
Every entry is then resolved through ordered fallback chains, evaluated
first-match-wins:

    ============  ====================================================
    value         chain
    ============  ====================================================
    target port   explicit target port → explicit port → default port
    service port  explicit port → explicit target port → default port
    port name     explicit name → ``<default-prefix>-<1-based index>``
    ============  ====================================================

Example:
    >>> resolver = PortResolver(None, [ExposedPort(port=8080, protocol="tcp")])
    >>> [p.container_port for p in resolver.container_ports("web")]
    [8080]
    >>> port_env_variables("web", resolver.container_ports("web"))[-1]
    Env(name='PORT_web', value='8080')
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from appchart.chart.models import DeploymentManifest, Env, ExposedPort, PortConfig
from appchart.core.settings import AppChartSettings, get_settings

PortFallback = Callable[[PortConfig], int]


@dataclass(frozen=True)
class ContainerPort:
    container_port: int

    def to_values(self) -> dict[str, int]:
        return {"containerPort": self.container_port}


@dataclass(frozen=True)
class ServicePort:
    name: str
    port: int
    protocol: str
    target_port: int

    def to_values(self) -> dict[str, object]:
        return {
            "name": self.name,
            "port": self.port,
            "protocol": self.protocol,
            "targetPort": self.target_port,
        }


def first_match(config: PortConfig, chain: Sequence[PortFallback]) -> int:
    """Return the first positive value produced by ``chain``."""
    for fallback in chain:
        value = fallback(config)
        if value > 0:
            return value
    raise ValueError("port fallback chain produced no value")


def target_port_chain(default_port: int) -> list[PortFallback]:
    return [
        lambda config: config.target_port,
        lambda config: config.port,
        lambda config: default_port,
    ]


def service_port_chain(default_port: int) -> list[PortFallback]:
    return [
        lambda config: config.port,
        lambda config: config.target_port,
        lambda config: default_port,
    ]


def default_port_name(prefix: str, index: int) -> str:
    """Generated name of the ``index``-th (0-based) port of a process."""
    return f"{prefix}-{index + 1}"


class PortResolver:
    """Resolves the ports of the processes of one deployment.

    Args:
        manifest: Deployment manifest with optional explicit per-process ports
        exposed_ports: Ports the deployment's image exposes
        settings: Source of the default port and port name prefix
    """

    def __init__(
        self,
        manifest: DeploymentManifest | None,
        exposed_ports: Sequence[ExposedPort],
        settings: AppChartSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.manifest = manifest
        if exposed_ports:
            self.exposed_ports = list(exposed_ports)
        else:
            self.exposed_ports = [ExposedPort(port=self.settings.default_port, protocol="TCP")]

    def port_configs(self, process_name: str) -> list[PortConfig]:
        """Explicit port configs of a process, else one per exposed image port."""
        if self.manifest is not None and self.manifest.kubernetes is not None:
            process_config = self.manifest.kubernetes.processes.get(process_name)
            if process_config is not None:
                return list(process_config.ports)
        return [
            PortConfig(
                name=default_port_name(self.settings.default_port_name, index),
                protocol=exposed.protocol.upper(),
                port=exposed.port,
                target_port=exposed.port,
            )
            for index, exposed in enumerate(self.exposed_ports)
        ]

    def container_ports(self, process_name: str) -> list[ContainerPort]:
        chain = target_port_chain(self.settings.default_port)
        return [
            ContainerPort(container_port=first_match(config, chain))
            for config in self.port_configs(process_name)
        ]

    def service_ports(self, process_name: str) -> list[ServicePort]:
        target_chain = target_port_chain(self.settings.default_port)
        port_chain = service_port_chain(self.settings.default_port)
        service_ports = []
        for index, config in enumerate(self.port_configs(process_name)):
            service_ports.append(
                ServicePort(
                    name=config.name or default_port_name(self.settings.default_port_name, index),
                    port=first_match(config, port_chain),
                    protocol=config.protocol,
                    target_port=first_match(config, target_chain),
                )
            )
        return service_ports


def public_service_port(service_ports: Sequence[ServicePort]) -> int | None:
    """The port ingress traffic is sent to: the first service port."""
    if not service_ports:
        return None
    return service_ports[0].port


def port_env_variables(process_name: str, container_ports: Sequence[ContainerPort]) -> list[Env]:
    """Environment variables advertising the ports a process listens on.

    A single port is published as ``port`` and ``PORT``; all ports are
    published comma-joined as ``PORT_<process>``.
    """
    if not container_ports:
        return []
    envs = []
    if len(container_ports) == 1:
        value = str(container_ports[0].container_port)
        envs.append(Env(name="port", value=value))
        envs.append(Env(name="PORT", value=value))
    joined = ",".join(str(port.container_port) for port in container_ports)
    envs.append(Env(name=f"PORT_{process_name}", value=joined))
    return envs


__all__ = [
    "ContainerPort",
    "PortResolver",
    "ServicePort",
    "default_port_name",
    "first_match",
    "port_env_variables",
    "public_service_port",
    "service_port_chain",
    "target_port_chain",
]
