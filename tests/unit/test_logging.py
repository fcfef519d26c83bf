"""Unit tests for structured logging."""

import logging

import pytest
import structlog
from uuid_utils.compat import uuid7

from carenotes.core.context import create_context, request_context
from carenotes.core.logging import (
    LogContext,
    add_request_context,
    build_processors,
    drop_color_message_key,
    get_logger,
    log_exception,
    setup_logging,
)
from carenotes.core.permissions import PermissionService

ROUTED = ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy")


@pytest.fixture(autouse=True)
def restore_stdlib_logging():
    """Put back the handlers setup_logging replaces."""
    root = logging.getLogger()
    saved = (root.handlers[:], root.level)
    routed = {name: logging.getLogger(name).handlers[:] for name in ROUTED}
    yield
    root.handlers, root.level = saved
    for name, handlers in routed.items():
        logging.getLogger(name).handlers = handlers
        logging.getLogger(name).propagate = True


class TestProcessors:
    """Tests for custom structlog processors."""

    def test_add_request_context(self):
        """Test that the current request context is added to events."""
        ctx = create_context(tenant_id=uuid7(), actor_id=uuid7())

        with request_context(ctx):
            event = add_request_context(None, "info", {"event": "x"})

        assert event["request_id"] == str(ctx.request_id)
        assert event["tenant_id"] == str(ctx.tenant_id)
        assert event["actor_id"] == str(ctx.actor_id)

    def test_add_request_context_keeps_explicit_values(self):
        """Test that explicitly logged ids are not overwritten."""
        ctx = create_context(tenant_id=uuid7(), actor_id=uuid7())

        with request_context(ctx):
            event = add_request_context(None, "info", {"event": "x", "request_id": "explicit"})

        assert event["request_id"] == "explicit"

    def test_add_request_context_without_context(self):
        """Test that events outside a request are untouched."""
        assert add_request_context(None, "info", {"event": "x"}) == {"event": "x"}

    def test_drop_color_message_key(self):
        """Test that uvicorn's color_message is removed."""
        event = drop_color_message_key(None, "info", {"event": "x", "color_message": "y"})

        assert "color_message" not in event

    def test_build_processors_timestamp(self):
        """Test the timestamp processor is optional."""
        assert len(build_processors(add_timestamp=True)) == len(build_processors(False)) + 1


class TestSetupLogging:
    """Tests for logging setup."""

    def test_json_output(self, capsys):
        """Test that JSON mode renders structured events."""
        setup_logging(log_level="INFO", json_format=True)

        get_logger("carenotes.test").info("resident_created", resident_id="r-1")

        output = capsys.readouterr().out
        assert '"event": "resident_created"' in output
        assert '"resident_id": "r-1"' in output

    def test_level_filtering(self, capsys):
        """Test that events below the configured level are dropped."""
        setup_logging(log_level="WARNING", json_format=True)

        logger = get_logger("carenotes.test")
        logger.info("hidden_event")
        logger.warning("shown_event")

        output = capsys.readouterr().out
        assert "hidden_event" not in output
        assert "shown_event" in output

    def test_sqlalchemy_quietened(self):
        """Test that SQLAlchemy statement logging is raised to WARNING."""
        setup_logging(log_level="DEBUG", json_format=False)

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    @pytest.mark.asyncio
    async def test_service_events_carry_module_logger_name(self, capsys, db_session, tenant_a):
        """Test that service modules log through named package loggers."""
        setup_logging(log_level="INFO", json_format=True)

        await PermissionService(db_session).resolve(tenant_a, {"janitor"})

        output = capsys.readouterr().out
        assert '"event": "unknown_roles"' in output
        assert '"logger": "carenotes.core.permissions"' in output


class TestLogContext:
    def test_binds_and_unbinds(self):
        """Test that LogContext binds variables only inside the block."""
        with LogContext(operation="seed"):
            assert structlog.contextvars.get_contextvars()["operation"] == "seed"

        assert "operation" not in structlog.contextvars.get_contextvars()


class TestLogException:
    def test_log_exception(self, capsys):
        """Test that exceptions are logged with type and message."""
        setup_logging(log_level="INFO", json_format=True)

        try:
            raise ValueError("broken")
        except ValueError as e:
            log_exception(get_logger("carenotes.test"), e, path="/x")

        output = capsys.readouterr().out
        assert '"error_type": "ValueError"' in output
        assert '"path": "/x"' in output
