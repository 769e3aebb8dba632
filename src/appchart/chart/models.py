"""Input models for the deployment specification compiler.

Provides the Pydantic v2 models an external reconciliation driver hands to
:func:`appchart.chart.compiler.compile_application`: the multi-version
``ApplicationSpec`` and the target ``EnvironmentSpec``.

Key Concepts:
    ApplicationSpec: Name, ordered deployments, env, ingress domains,
        label/annotation rules and canary configuration.
    DeploymentSpec: One immutable image + process-set revision, identified by
        an integer version. Two coexist during a canary rollout.
    DeploymentManifest: Per-deployment process configuration (hooks,
        health checks, explicit per-process ports).
    EnvironmentSpec: Ingress controller type/class, certificate issuer,
        service endpoint and quota.
    MetadataRule: Label/annotation rule scoped by target kind, deployment
        version and process name.

Architecture Decisions:
    - Pydantic (not dataclass): specs arrive as YAML/JSON from the driver
      and must be validated; ``populate_by_name`` accepts both the
      snake_case field names and the camelCase aliases of the manifest
      format.
    - Kubernetes sub-objects (probes, resources, volumes, security context)
      are opaque mappings copied verbatim into the rendered values.
    - ``TargetKind`` is a closed enum; an unknown ``apiVersion``/``kind`` pair
      maps to ``None`` and the rule never applies.

Tags:
    models, pydantic, application, environment, ingress, canary
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_NUMBER_OF_UNITS = 1

DeploymentVersion = int


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


# ---------------------------------------------------------------------------
# Small value types
# ---------------------------------------------------------------------------


class Env(_Model):
    """An environment variable of an application or process."""

    name: str = Field(min_length=1)
    value: str = ""


class Label(_Model):
    """A label attached to a deployment."""

    name: str = Field(min_length=1)
    value: str = ""


class ExposedPort(_Model):
    """A port declared by a deployment's image (``EXPOSE 8080/tcp``)."""

    port: int = Field(gt=0, lt=65536)
    protocol: str = "TCP"


class PortConfig(_Model):
    """Explicit port configuration of a process.

    ``port`` is exposed on the service, ``target_port`` is the port the
    process listens on. Either may be omitted (``0``).
    """

    name: str = ""
    protocol: str = ""
    port: int = Field(default=0, ge=0, lt=65536)
    target_port: int = Field(default=0, ge=0, lt=65536, alias="targetPort")


# ---------------------------------------------------------------------------
# Deployment manifest (hooks, health checks, ports)
# ---------------------------------------------------------------------------


class RestartHooks(_Model):
    """Commands run around a unit restart."""

    before: list[str] = Field(default_factory=list)
    after: list[str] = Field(default_factory=list)


class Hooks(_Model):
    restart: RestartHooks = Field(default_factory=RestartHooks)


class HealthcheckConfig(_Model):
    """Probe configuration of a deployment.

    ``liveness_probe``, ``readiness_probe`` and ``startup_probe`` are
    Kubernetes probe objects copied as-is. The remaining fields describe the
    legacy path-based HTTP health check, used only when no probe object is
    given.
    """

    liveness_probe: dict[str, Any] | None = Field(default=None, alias="livenessProbe")
    readiness_probe: dict[str, Any] | None = Field(default=None, alias="readinessProbe")
    startup_probe: dict[str, Any] | None = Field(default=None, alias="startupProbe")

    path: str = ""
    scheme: str = ""
    method: str = ""
    interval_seconds: int = Field(default=0, ge=0)
    timeout_seconds: int = Field(default=0, ge=0)
    allowed_failures: int = Field(default=0, ge=0)
    use_in_router: bool = False
    force_restart: bool = False

    @property
    def has_probes(self) -> bool:
        return any(
            probe is not None
            for probe in (self.liveness_probe, self.readiness_probe, self.startup_probe)
        )


class ProcessPortsConfig(_Model):
    ports: list[PortConfig] = Field(default_factory=list)


class KubernetesConfig(_Model):
    """Per-process Kubernetes configuration, keyed by process name."""

    processes: dict[str, ProcessPortsConfig] = Field(default_factory=dict)


class DeploymentManifest(_Model):
    """Describes how the processes of one deployment are run."""

    hooks: Hooks | None = None
    healthcheck: HealthcheckConfig | None = None
    kubernetes: KubernetesConfig | None = None


# ---------------------------------------------------------------------------
# Processes and deployments
# ---------------------------------------------------------------------------


class ProcessSpec(_Model):
    """Desired behavior of one process of a deployment."""

    name: str = Field(min_length=1)
    cmd: list[str] = Field(default_factory=list)
    units: int | None = Field(default=None, ge=0)
    env: list[Env] = Field(default_factory=list)
    resources: dict[str, Any] | None = None
    volumes: list[dict[str, Any]] = Field(default_factory=list)
    volume_mounts: list[dict[str, Any]] = Field(default_factory=list, alias="volumeMounts")
    security_context: dict[str, Any] | None = Field(default=None, alias="securityContext")


class RoutingSettings(_Model):
    """Share of incoming traffic (0-100) routed to a deployment."""

    weight: int = Field(default=0, ge=0, le=100)


class DeploymentSpec(_Model):
    """One immutable image + process-set revision of an application."""

    image: str = Field(min_length=1)
    version: DeploymentVersion = Field(gt=0)
    processes: list[ProcessSpec] = Field(default_factory=list)
    manifest: DeploymentManifest | None = None
    labels: list[Label] = Field(default_factory=list)
    routing_settings: RoutingSettings = Field(default_factory=RoutingSettings, alias="routingSettings")
    exposed_ports: list[ExposedPort] = Field(default_factory=list, alias="exposedPorts")
    image_pull_secrets: list[str] = Field(default_factory=list, alias="imagePullSecrets")

    @model_validator(mode="after")
    def _unique_process_names(self) -> DeploymentSpec:
        seen: set[str] = set()
        for process in self.processes:
            if process.name in seen:
                raise ValueError(f"duplicate process name {process.name!r} in deployment {self.version}")
            seen.add(process.name)
        return self


# ---------------------------------------------------------------------------
# Ingress
# ---------------------------------------------------------------------------


class CustomDomain(_Model):
    """A DNS name routed to the application, optionally served over TLS.

    ``secret_name`` references an operator-supplied TLS secret. Without one a
    secure domain gets its certificate from the environment's issuer.
    """

    name: str = Field(min_length=1)
    secure: bool = False
    secret_name: str = Field(default="", alias="secretName")


class IngressSpec(_Model):
    generate_default_domain: bool = Field(default=False, alias="generateDefaultCname")
    domains: list[CustomDomain] = Field(default_factory=list, alias="cnames")


# ---------------------------------------------------------------------------
# Metadata rules
# ---------------------------------------------------------------------------


class TargetKind(str, Enum):
    """Kinds of rendered objects a metadata rule can target."""

    DEPLOYMENT = "Deployment"
    SERVICE = "Service"
    POD = "Pod"


_TARGET_API_VERSIONS: dict[TargetKind, str] = {
    TargetKind.DEPLOYMENT: "apps/v1",
    TargetKind.SERVICE: "v1",
    TargetKind.POD: "v1",
}


class MetadataTarget(_Model):
    api_version: str = Field(default="", alias="apiVersion")
    kind: str = ""

    @property
    def target_kind(self) -> TargetKind | None:
        """The recognized kind, or ``None`` for an unsupported target."""
        for kind, api_version in _TARGET_API_VERSIONS.items():
            if self.kind == kind.value and self.api_version == api_version:
                return kind
        return None

    @classmethod
    def of(cls, kind: TargetKind) -> MetadataTarget:
        return cls(api_version=_TARGET_API_VERSIONS[kind], kind=kind.value)


class MetadataRule(_Model):
    """A request to add labels or annotations to rendered objects.

    ``deployment_version == 0`` and ``process_name == ""`` match everything.
    """

    target: MetadataTarget = Field(default_factory=MetadataTarget)
    apply: dict[str, str] = Field(default_factory=dict)
    deployment_version: int = Field(default=0, ge=0, alias="deploymentVersion")
    process_name: str = Field(default="", alias="processName")


# ---------------------------------------------------------------------------
# Canary
# ---------------------------------------------------------------------------


class CanarySpec(_Model):
    """Canary rollout configuration and progress."""

    steps: int = Field(default=0, ge=0, le=100)
    step_weight: int = Field(default=0, ge=0, le=100, alias="stepWeight")
    step_interval: timedelta = Field(default=timedelta(0), alias="stepTimeInterval")
    next_scheduled_time: datetime | None = Field(default=None, alias="nextScheduledTime")
    current_step: int = Field(default=0, ge=0, alias="currentStep")
    active: bool = False
    started: datetime | None = None
    target: dict[str, int] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Application and environment
# ---------------------------------------------------------------------------


class ApplicationSpec(_Model):
    """Desired state of an application across its deployment versions."""

    name: str = Field(min_length=1, max_length=40, pattern=r"^[a-z][a-z0-9-]*$")
    id: str = ""
    version: str | None = None
    description: str = Field(default="", max_length=140)
    deployments: list[DeploymentSpec] = Field(default_factory=list)
    env: list[Env] = Field(default_factory=list)
    ingress: IngressSpec = Field(default_factory=IngressSpec)
    docker_registry_secret: str = Field(default="", alias="dockerRegistrySecret")
    labels: list[MetadataRule] = Field(default_factory=list)
    annotations: list[MetadataRule] = Field(default_factory=list)
    service_account_name: str = Field(default="", alias="serviceAccountName")
    canary: CanarySpec = Field(default_factory=CanarySpec)

    def deployment(self, version: DeploymentVersion) -> DeploymentSpec | None:
        for deployment in self.deployments:
            if deployment.version == version:
                return deployment
        return None


class IngressControllerType(str, Enum):
    TRAEFIK = "traefik"
    ISTIO = "istio"
    NGINX = "nginx"


class IngressControllerSpec(_Model):
    class_name: str = Field(default="", alias="className")
    service_endpoint: str = Field(default="", alias="serviceEndpoint")
    type: IngressControllerType = IngressControllerType.TRAEFIK
    cluster_issuer: str = Field(default="", alias="clusterIssuer")


class EnvironmentSpec(_Model):
    """The target environment applications are compiled for."""

    name: str = Field(min_length=1)
    namespace: str = ""
    ingress_controller: IngressControllerSpec = Field(
        default_factory=IngressControllerSpec, alias="ingressController"
    )
    app_quota_limit: int | None = Field(default=None, alias="appQuotaLimit")


__all__ = [
    "ApplicationSpec",
    "CanarySpec",
    "CustomDomain",
    "DEFAULT_NUMBER_OF_UNITS",
    "DeploymentManifest",
    "DeploymentSpec",
    "DeploymentVersion",
    "Env",
    "EnvironmentSpec",
    "ExposedPort",
    "HealthcheckConfig",
    "Hooks",
    "IngressControllerSpec",
    "IngressControllerType",
    "IngressSpec",
    "KubernetesConfig",
    "Label",
    "MetadataRule",
    "MetadataTarget",
    "PortConfig",
    "ProcessPortsConfig",
    "ProcessSpec",
    "RestartHooks",
    "RoutingSettings",
    "TargetKind",
]
