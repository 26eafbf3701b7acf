"""
Logging configuration tests.

Tests for handlebridge._logging setup.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_logger():
    """Put the package logger back the way the test found it."""
    from handlebridge._logging import logger

    handlers = logger.handlers[:]
    level = logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging() function."""

    def test_setup_logging_accessible(self):
        """setup_logging is exported from the package."""
        import handlebridge

        assert callable(handlebridge.setup_logging)

    def test_setup_logging_default_level(self):
        """setup_logging() defaults to WARN."""
        from handlebridge._logging import logger, setup_logging

        setup_logging()

        assert logger.level == logging.WARNING

    def test_setup_logging_accepts_string_level(self):
        from handlebridge._logging import logger, setup_logging

        setup_logging("DEBUG")

        assert logger.level == logging.DEBUG

    def test_setup_logging_accepts_int_level(self):
        from handlebridge._logging import logger, setup_logging

        setup_logging(logging.ERROR)

        assert logger.level == logging.ERROR

    @pytest.mark.parametrize(
        "name, level",
        [
            ("trace", logging.DEBUG),
            ("info", logging.INFO),
            ("warn", logging.WARNING),
            ("fatal", logging.CRITICAL),
        ],
    )
    def test_level_names(self, name, level):
        from handlebridge._logging import logger, setup_logging

        setup_logging(name)

        assert logger.level == level

    def test_off_silences_everything(self):
        from handlebridge._logging import logger, setup_logging

        setup_logging("off")

        assert not logger.isEnabledFor(logging.CRITICAL)

    def test_unknown_level_falls_back_to_warn(self):
        from handlebridge._logging import logger, setup_logging

        setup_logging("chatty")

        assert logger.level == logging.WARNING

    def test_setup_logging_replaces_handlers(self):
        """setup_logging() leaves exactly one handler."""
        from handlebridge._logging import logger, setup_logging

        logger.addHandler(logging.StreamHandler())
        logger.addHandler(logging.StreamHandler())

        setup_logging("INFO")

        assert len(logger.handlers) == 1

    def test_format_selects_formatter(self, monkeypatch):
        from handlebridge._logging import HumanFormatter, JsonFormatter, logger, setup_logging

        monkeypatch.delenv("HANDLEBRIDGE_LOG_FORMAT", raising=False)

        setup_logging("INFO", format="json")
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

        setup_logging("INFO", format="human")
        assert isinstance(logger.handlers[0].formatter, HumanFormatter)


class TestEnvironment:
    """HANDLEBRIDGE_LOG_LEVEL and HANDLEBRIDGE_LOG_FORMAT."""

    def test_level_from_env(self, monkeypatch):
        from handlebridge._logging import _get_log_level

        monkeypatch.setenv("HANDLEBRIDGE_LOG_LEVEL", "DEBUG")

        assert _get_log_level() == logging.DEBUG

    def test_level_default(self, monkeypatch):
        from handlebridge._logging import _get_log_level

        monkeypatch.delenv("HANDLEBRIDGE_LOG_LEVEL", raising=False)

        assert _get_log_level() == logging.WARNING

    def test_format_from_env(self, monkeypatch):
        from handlebridge._logging import _get_log_format

        monkeypatch.setenv("HANDLEBRIDGE_LOG_FORMAT", "JSON")

        assert _get_log_format() == "json"


class TestLoggerHierarchy:
    """Tests for logger hierarchy."""

    def test_logger_name(self):
        from handlebridge._logging import logger

        assert logger.name == "handlebridge"

    def test_module_loggers_are_children(self):
        child = logging.getLogger("handlebridge.registry")

        assert child.parent.name == "handlebridge"

    def test_child_inherits_level(self):
        from handlebridge._logging import setup_logging

        setup_logging("DEBUG")

        assert logging.getLogger("handlebridge.child").getEffectiveLevel() == logging.DEBUG


class TestBoundaryLogging:
    """Registry and shim events reach the package logger."""

    def test_invalid_release_logs_warning(self, registry, caplog):
        from handlebridge import InvalidHandleError

        with caplog.at_level(logging.WARNING, logger="handlebridge"):
            with pytest.raises(InvalidHandleError):
                registry.release(0x1_0000_0000)

        records = [r for r in caplog.records if r.name == "handlebridge"]
        assert records
        assert records[0].scope == "registry"
        assert records[0].handle == 0x1_0000_0000

    def test_allocate_logs_debug(self, registry, caplog):
        with caplog.at_level(logging.DEBUG, logger="handlebridge"):
            handle = registry.allocate("value")

        assert any(getattr(r, "handle", None) == handle for r in caplog.records)
        registry.release(handle)
