"""
Error types raised by the appchart compiler and rollout helpers.

All failures derive from :class:`AppChartError`. Each class fixes a
category and a retry hint; the reconciliation driver owns retry policy and
only reads these attributes. Errors also carry an :class:`ErrorContext`
naming the app, deployment version, process or domain that failed, and an
optional ``cause`` when a collaborator's exception is wrapped.

Hierarchy:
    ::

        AppChartError                      INTERNAL
        ├── ValidationError                VALIDATION
        │   ├── EmptyDefinitionError
        │   ├── MalformedMetadataKeyError
        │   ├── PortsNotFoundError
        │   └── HealthcheckError
        ├── ConfigError                    CONFIG
        │   └── MissingClusterIssuerError
        ├── NotFoundError                  NOT_FOUND
        │   └── TemplatesNotFoundError
        ├── InstallError                   INSTALL (retryable)
        └── CanaryError                    ROLLOUT

Examples:
    >>> err = PortsNotFoundError().with_context(app="shop", process="web")
    >>> (err.category.value, err.retryable, err.context.process)
    ('VALIDATION', False, 'web')

Tags:
    errors, appchart
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Broad failure classes used for routing and reporting."""

    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    NOT_FOUND = "NOT_FOUND"
    INSTALL = "INSTALL"
    ROLLOUT = "ROLLOUT"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """What the compiler was working on when it failed.

    Keys without a dedicated field end up in ``metadata``.
    """

    app: str | None = None
    deployment_version: int | None = None
    process: str | None = None
    domain: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls) if f.name != "metadata")

    def to_dict(self) -> dict[str, Any]:
        """Flatten into a dict of the populated fields plus metadata."""
        flat = {name: getattr(self, name) for name in self.field_names()}
        flat = {name: value for name, value in flat.items() if value is not None}
        return {**flat, **self.metadata}


class AppChartError(Exception):
    """Root of the appchart error tree.

    Subclasses override the class attributes ``default_category``,
    ``default_retryable`` and ``default_message``; any of them can still be
    overridden per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    default_message: str = "appchart error"

    def __init__(
        self,
        message: str | None = None,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.category = category if category is not None else self.default_category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = context if context is not None else ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **values: Any) -> AppChartError:
        """Record context on the error and return it, so it can be raised inline."""
        known = ErrorContext.field_names()
        for key, value in values.items():
            if key in known:
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialise for structured logs and CLI output."""
        payload: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if context := self.context.to_dict():
            payload["context"] = context
        if self.cause is not None:
            payload["cause"] = str(self.cause)
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


class ValidationError(AppChartError):
    """The application specification is invalid; the compile call fails."""

    default_category = ErrorCategory.VALIDATION
    default_message = "invalid application specification"


class EmptyDefinitionError(ValidationError):
    default_message = "procfile should contain at least one process name with a command"


class MalformedMetadataKeyError(ValidationError):
    """A label or annotation key that Kubernetes would reject."""

    default_message = "malformed metadata key"


class PortsNotFoundError(ValidationError):
    """A routable process ended up without container or service ports."""

    default_message = "routable process should have at least one container port and one service port"


class HealthcheckError(ValidationError):
    default_message = "healthcheck: only GET method is supported with use_in_router set"


class ConfigError(AppChartError):
    """The target environment lacks configuration the app relies on."""

    default_category = ErrorCategory.CONFIG
    default_message = "invalid environment configuration"


class MissingClusterIssuerError(ConfigError):
    default_message = "secure cnames require a framework.Ingress.ClusterIssuer to be specified"


class NotFoundError(AppChartError):
    default_category = ErrorCategory.NOT_FOUND
    default_message = "not found"


class TemplatesNotFoundError(NotFoundError):
    """The template store has nothing under the requested name."""

    default_message = "templates not found"


class InstallError(AppChartError):
    """The chart installer failed. The driver may re-run the compile later."""

    default_category = ErrorCategory.INSTALL
    default_retryable = True
    default_message = "chart installation failed"


class CanaryError(AppChartError):
    """The requested canary transition is not valid in the current state."""

    default_category = ErrorCategory.ROLLOUT
    default_message = "canary rollout error"


def is_retryable(error: Exception) -> bool:
    """True only for appchart errors flagged retryable."""
    return isinstance(error, AppChartError) and error.retryable


def categorize_error(error: Exception) -> ErrorCategory:
    return error.category if isinstance(error, AppChartError) else ErrorCategory.INTERNAL


__all__ = [
    "AppChartError",
    "CanaryError",
    "ConfigError",
    "EmptyDefinitionError",
    "ErrorCategory",
    "ErrorContext",
    "HealthcheckError",
    "InstallError",
    "MalformedMetadataKeyError",
    "MissingClusterIssuerError",
    "NotFoundError",
    "PortsNotFoundError",
    "TemplatesNotFoundError",
    "ValidationError",
    "categorize_error",
    "is_retryable",
]
