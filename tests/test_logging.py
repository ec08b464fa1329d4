"""Tests for konterra.core.logging."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog

from konterra.core.logging import (
    _NOISE_LOGGERS,
    _service_context,
    _user_context,
    add_otel_context,
    add_request_context,
    configure_logging,
    get_user_context,
    set_user_context,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset logging and the context vars between tests."""
    service_token = _service_context.set(None)
    user_token = _user_context.set(None)
    yield
    _user_context.reset(user_token)
    _service_context.reset(service_token)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    for name in _NOISE_LOGGERS:
        logging.getLogger(name).handlers.clear()


class TestUserContext:
    def test_set_and_get(self):
        set_user_context("user-1")
        assert get_user_context() == "user-1"

    def test_default_is_none(self):
        assert get_user_context() is None


class TestAddRequestContext:
    def test_injects_service_and_user(self):
        _service_context.set("konterra")
        set_user_context("user-1")
        result = add_request_context(None, "info", {"event": "test"})
        assert result["service"] == "konterra"
        assert result["user_id"] == "user-1"

    def test_unset_context(self):
        result = add_request_context(None, "info", {"event": "test"})
        assert result["service"] is None
        assert result["user_id"] is None


class TestAddOtelContext:
    def test_zeroed_ids_when_no_span(self):
        result = add_otel_context(None, "info", {"event": "test"})
        assert result["trace_id"] == "0" * 32
        assert result["span_id"] == "0" * 16

    def test_real_ids_when_span_active(self):
        from opentelemetry.sdk.trace import TracerProvider

        provider = TracerProvider()
        tracer = provider.get_tracer("test")
        with tracer.start_as_current_span("merge"):
            result = add_otel_context(None, "info", {"event": "test"})
            assert result["trace_id"] != "0" * 32
            assert len(result["trace_id"]) == 32
            assert len(result["span_id"]) == 16
        provider.shutdown()


class TestConfigureLogging:
    def test_text_format_installs_console_renderer(self):
        configure_logging(fmt="text")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(formatter.processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_format_installs_json_renderer(self):
        configure_logging(fmt="json")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_reconfigure_does_not_stack_handlers(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_sets_service_context(self):
        configure_logging(service_name="konterra-api")
        assert _service_context.get() == "konterra-api"

    def test_noise_loggers_suppressed(self):
        configure_logging()
        for name in ("httpx", "httpcore", "uvicorn.access"):
            assert logging.getLogger(name).level >= logging.WARNING

    def test_log_level_applied(self):
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG


class TestLogFiles:
    def test_creates_subdirectories(self, tmp_path: Path):
        configure_logging(log_root=tmp_path / "logs", service_name="konterra")
        assert (tmp_path / "logs" / "konterra").is_dir()
        assert (tmp_path / "logs" / "uvicorn").is_dir()

    def test_app_and_transport_files(self, tmp_path: Path):
        configure_logging(log_root=tmp_path, service_name="crm")
        app_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(app_handlers) == 1
        assert app_handlers[0].baseFilename.endswith("konterra/crm.log")

        transport_handlers = [
            h for h in logging.getLogger("httpx").handlers if isinstance(h, logging.FileHandler)
        ]
        assert transport_handlers[0].baseFilename.endswith("uvicorn/crm.log")

    def test_file_output_is_json_with_context(self, tmp_path: Path):
        configure_logging(fmt="text", log_root=tmp_path, service_name="crm")
        set_user_context("user-7")
        logging.getLogger("konterra.test").warning("merge finished")
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = (tmp_path / "konterra" / "crm.log").read_text().strip()
        data = json.loads(content.splitlines()[-1])
        assert data["event"] == "merge finished"
        assert data["service"] == "crm"
        assert data["user_id"] == "user-7"
