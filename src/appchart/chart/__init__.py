"""Deployment specification compiler.

Modules:
    - :mod:`appchart.chart.models` - Application / environment input models
    - :mod:`appchart.chart.procfile` - Process file parsing, routable process
    - :mod:`appchart.chart.ports` - Container / service port resolution
    - :mod:`appchart.chart.probes` - Probes, restart hooks, commands
    - :mod:`appchart.chart.metadata` - Label / annotation rules
    - :mod:`appchart.chart.ingress` - HTTP / HTTPS endpoint resolution
    - :mod:`appchart.chart.process` - Fully-resolved process definitions
    - :mod:`appchart.chart.compiler` - Values tree and chart files
    - :mod:`appchart.chart.templates` - Template sets and readers
    - :mod:`appchart.chart.installer` - Installer boundary
"""

from __future__ import annotations

from appchart.chart.compiler import (
    ApplicationChart,
    ChartConfig,
    CompiledDeployment,
    compile_application,
    new_chart_config,
)
from appchart.chart.ingress import HttpsEndpoint, Ingress, ManagedBy, resolve_ingress
from appchart.chart.installer import ChartInstaller, DirectoryInstaller, deploy_application
from appchart.chart.metadata import MetadataBuckets, apply_rules, rule_applies
from appchart.chart.models import (
    ApplicationSpec,
    CanarySpec,
    CustomDomain,
    DeploymentManifest,
    DeploymentSpec,
    Env,
    EnvironmentSpec,
    ExposedPort,
    IngressControllerSpec,
    IngressControllerType,
    MetadataRule,
    MetadataTarget,
    PortConfig,
    ProcessSpec,
    TargetKind,
)
from appchart.chart.ports import PortResolver, port_env_variables
from appchart.chart.process import ProcessDefinition, build_process
from appchart.chart.procfile import Procfile, parse_procfile, routable_process
from appchart.chart.templates import InMemoryTemplateStore, TemplateSet, ingress_templates_name

__all__ = [
    "ApplicationChart",
    "ApplicationSpec",
    "CanarySpec",
    "ChartConfig",
    "ChartInstaller",
    "CompiledDeployment",
    "CustomDomain",
    "DeploymentManifest",
    "DeploymentSpec",
    "DirectoryInstaller",
    "Env",
    "EnvironmentSpec",
    "ExposedPort",
    "HttpsEndpoint",
    "InMemoryTemplateStore",
    "Ingress",
    "IngressControllerSpec",
    "IngressControllerType",
    "ManagedBy",
    "MetadataBuckets",
    "MetadataRule",
    "MetadataTarget",
    "PortConfig",
    "PortResolver",
    "ProcessDefinition",
    "ProcessSpec",
    "Procfile",
    "TargetKind",
    "TemplateSet",
    "apply_rules",
    "build_process",
    "compile_application",
    "deploy_application",
    "ingress_templates_name",
    "new_chart_config",
    "parse_procfile",
    "port_env_variables",
    "resolve_ingress",
    "routable_process",
    "rule_applies",
]
