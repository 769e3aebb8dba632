"""Ingress endpoint resolution.

Splits an application's custom domains into plain-HTTP hosts and HTTPS
endpoints and decides who owns each HTTPS certificate:

* a secure domain with a ``secret_name`` uses the operator's secret
  (``ManagedBy.USER``);
* any other secure domain gets a synthesized secret name that the
  environment's certificate issuer fills in
  (``ManagedBy.CERTIFICATE_AUTHORITY``).

Secure domains require the environment to declare a cluster issuer. Domain
names are turned into DNS-label-safe identifiers so that they can name
Kubernetes objects::

    "Shop.Example.com"  →  "shop-example-com"
    "shop"              →  "<app>-https-shop" / "<app>-cname-shop"
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from appchart.chart.models import ApplicationSpec, EnvironmentSpec
from appchart.core.errors import MissingClusterIssuerError
from appchart.core.settings import AppChartSettings, get_settings

_NON_DNS_LABEL = re.compile(r"[^a-z0-9]+")


class ManagedBy(str, Enum):
    """Owner of the TLS certificate of an HTTPS endpoint."""

    CERTIFICATE_AUTHORITY = "cert-manager"
    USER = "user"


@dataclass(frozen=True)
class HttpsEndpoint:
    unique_name: str
    cname: str
    secret_name: str
    managed_by: ManagedBy

    def to_values(self) -> dict[str, str]:
        return {
            "uniqueName": self.unique_name,
            "cname": self.cname,
            "secretName": self.secret_name,
            "managedBy": self.managed_by.value,
        }


@dataclass
class Ingress:
    """Entrypoints of an application."""

    http: list[str] = field(default_factory=list)
    https: list[HttpsEndpoint] = field(default_factory=list)

    def to_values(self) -> dict[str, list]:
        return {
            "http": list(self.http),
            "https": [endpoint.to_values() for endpoint in self.https],
        }


def strip_domain(name: str) -> str:
    """Case-fold a domain and replace each run of non ``[a-z0-9]`` with ``-``.

    Leading and trailing dashes are dropped so the result is a valid DNS label.
    """
    return _NON_DNS_LABEL.sub("-", name.casefold()).strip("-")


def default_domain(
    app: ApplicationSpec,
    environment: EnvironmentSpec | None,
    settings: AppChartSettings | None = None,
) -> str | None:
    """``<app>.<service-endpoint>.<base-domain>``, or None when not requested or not possible."""
    if environment is None or not app.ingress.generate_default_domain:
        return None
    endpoint = environment.ingress_controller.service_endpoint
    if not endpoint:
        return None
    settings = settings or get_settings()
    return f"{app.name}.{endpoint}.{settings.base_domain}"


def resolve_ingress(
    app: ApplicationSpec,
    environment: EnvironmentSpec,
    settings: AppChartSettings | None = None,
) -> Ingress:
    """Resolve the HTTP hosts and HTTPS endpoints of an application.

    Raises:
        MissingClusterIssuerError: a secure domain is requested and the
            environment has no cluster issuer
    """
    ingress = Ingress()
    issuer = environment.ingress_controller.cluster_issuer
    for domain in app.ingress.domains:
        if not domain.secure:
            ingress.http.append(domain.name)
            continue
        if not issuer:
            raise MissingClusterIssuerError().with_context(app=app.name, domain=domain.name)
        stripped = strip_domain(domain.name)
        if domain.secret_name:
            secret_name, managed_by = domain.secret_name, ManagedBy.USER
        else:
            secret_name, managed_by = f"{app.name}-cname-{stripped}", ManagedBy.CERTIFICATE_AUTHORITY
        ingress.https.append(
            HttpsEndpoint(
                unique_name=f"{app.name}-https-{stripped}",
                cname=domain.name,
                secret_name=secret_name,
                managed_by=managed_by,
            )
        )

    generated = default_domain(app, environment, settings)
    if generated is not None:
        ingress.http.append(generated)
    return ingress


def application_urls(
    app: ApplicationSpec,
    environment: EnvironmentSpec | None,
    settings: AppChartSettings | None = None,
) -> list[str]:
    """URLs the application is reachable at, default domain first."""
    urls = []
    generated = default_domain(app, environment, settings)
    if generated is not None:
        urls.append(f"http://{generated}")
    for domain in app.ingress.domains:
        scheme = "https" if domain.secure else "http"
        urls.append(f"{scheme}://{domain.name}")
    return urls


__all__ = [
    "HttpsEndpoint",
    "Ingress",
    "ManagedBy",
    "application_urls",
    "default_domain",
    "resolve_ingress",
    "strip_domain",
]
