"""Tests for appchart.core.errors module."""

import pytest

from appchart.core.errors import (
    AppChartError,
    CanaryError,
    ConfigError,
    EmptyDefinitionError,
    ErrorCategory,
    ErrorContext,
    HealthcheckError,
    InstallError,
    MalformedMetadataKeyError,
    MissingClusterIssuerError,
    PortsNotFoundError,
    TemplatesNotFoundError,
    ValidationError,
    categorize_error,
    is_retryable,
)


class TestErrorContext:
    def test_empty_context(self):
        ctx = ErrorContext()
        assert ctx.app is None
        assert ctx.metadata == {}
        assert ctx.to_dict() == {}

    def test_to_dict_includes_set_fields(self):
        ctx = ErrorContext(app="shop", process="web", metadata={"attempt": 2})
        d = ctx.to_dict()
        assert d == {"app": "shop", "process": "web", "attempt": 2}


class TestAppChartError:
    def test_default_message_and_category(self):
        error = AppChartError()
        assert error.message == "appchart error"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False

    def test_with_context_is_fluent(self):
        error = PortsNotFoundError().with_context(app="shop", deployment_version=3, process="web")
        assert isinstance(error, PortsNotFoundError)
        assert error.context.app == "shop"
        assert error.context.deployment_version == 3
        assert error.context.process == "web"

    def test_unknown_context_keys_go_to_metadata(self):
        error = CanaryError().with_context(deployments=1)
        assert error.context.metadata == {"deployments": 1}

    def test_cause_is_chained(self):
        original = OSError("disk full")
        error = InstallError("install failed", cause=original)
        assert error.cause is original
        assert error.__cause__ is original

    def test_to_dict(self):
        error = MissingClusterIssuerError().with_context(app="shop", domain="shop.example.com")
        d = error.to_dict()
        assert d["error_type"] == "MissingClusterIssuerError"
        assert d["category"] == "CONFIG"
        assert d["retryable"] is False
        assert d["context"] == {"app": "shop", "domain": "shop.example.com"}
        assert "cause" not in d

    def test_repr(self):
        assert repr(TemplatesNotFoundError("x")) == "TemplatesNotFoundError('x', category=NOT_FOUND)"


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_class",
        [EmptyDefinitionError, MalformedMetadataKeyError, PortsNotFoundError, HealthcheckError],
    )
    def test_validation_errors(self, error_class):
        error = error_class()
        assert isinstance(error, ValidationError)
        assert error.category == ErrorCategory.VALIDATION
        assert not error.retryable

    def test_missing_cluster_issuer_is_config_error(self):
        assert isinstance(MissingClusterIssuerError(), ConfigError)

    def test_empty_definition_message(self):
        assert str(EmptyDefinitionError()) == (
            "procfile should contain at least one process name with a command"
        )

    def test_install_error_is_retryable(self):
        assert InstallError().retryable is True


class TestHelpers:
    def test_is_retryable(self):
        assert is_retryable(InstallError())
        assert not is_retryable(PortsNotFoundError())
        assert not is_retryable(RuntimeError("boom"))

    def test_categorize_error(self):
        assert categorize_error(CanaryError()) == ErrorCategory.ROLLOUT
        assert categorize_error(KeyError("x")) == ErrorCategory.INTERNAL
