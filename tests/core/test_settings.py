"""Tests for appchart.core.settings and appchart.core.logging."""

import pytest
import structlog
from pydantic import ValidationError

from appchart.core.logging import LogContext, bind_context, configure_logging, get_logger, unbind_context
from appchart.core.settings import (
    DEFAULT_APPLICATION_PORT,
    DEFAULT_PORT_NAME,
    AppChartSettings,
    get_settings,
)


class TestAppChartSettings:
    def test_defaults(self, settings):
        assert settings.default_port == DEFAULT_APPLICATION_PORT == 8888
        assert settings.default_port_name == DEFAULT_PORT_NAME == "http-default"
        assert settings.base_domain == "shipa.cloud"
        assert settings.chart_version == "0.0.1"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("APPCHART_DEFAULT_PORT", "8080")
        monkeypatch.setenv("APPCHART_BASE_DOMAIN", "apps.example.com")
        settings = AppChartSettings(_env_file=None)
        assert settings.default_port == 8080
        assert settings.base_domain == "apps.example.com"

    def test_invalid_port_rejected(self, monkeypatch):
        monkeypatch.setenv("APPCHART_DEFAULT_PORT", "70000")
        with pytest.raises(ValidationError):
            AppChartSettings(_env_file=None)

    def test_invalid_log_format_rejected(self):
        with pytest.raises(ValidationError):
            AppChartSettings(_env_file=None, log_format="xml")

    def test_log_level(self):
        assert AppChartSettings(_env_file=None, log_level="debug").log_level == "debug"
        with pytest.raises(ValidationError):
            AppChartSettings(_env_file=None, log_level="LOUD")

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestLogging:
    def test_log_context_binds_and_unbinds(self):
        configure_logging(level="DEBUG", json_format=True)
        with LogContext(app="shop", environment="production"):
            assert structlog.contextvars.get_contextvars() == {
                "app": "shop",
                "environment": "production",
            }
        assert structlog.contextvars.get_contextvars() == {}

    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_format=True, add_timestamp=False)
        get_logger("tests").info("chart_compiled", app="shop")
        out = capsys.readouterr().out
        assert '"event": "chart_compiled"' in out
        assert '"app": "shop"' in out
        assert '"service.name": "appchart"' in out

    def test_log_context_restores_outer_binding(self):
        with LogContext(app="shop"):
            with LogContext(app="blog", environment="staging"):
                assert structlog.contextvars.get_contextvars()["app"] == "blog"
            assert structlog.contextvars.get_contextvars() == {"app": "shop"}
        assert structlog.contextvars.get_contextvars() == {}

    def test_custom_service_name(self, capsys):
        configure_logging(level="INFO", json_format=True, service="reconciler", add_timestamp=False)
        get_logger("tests").info("tick")
        assert '"service.name": "reconciler"' in capsys.readouterr().out

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            configure_logging(level="LOUD")

    def test_bind_and_unbind(self):
        bind_context(app="shop", deployment_version=2)
        unbind_context("deployment_version")
        assert structlog.contextvars.get_contextvars() == {"app": "shop"}
        unbind_context("app")
        assert structlog.contextvars.get_contextvars() == {}
