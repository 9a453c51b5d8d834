"""
Unit tests for logging setup
"""
import logging

import pytest

from cj_fulfillment.utils.logger import (
    FulfillmentLogger, LOG_FILE_NAME, PACKAGE_LOGGER, get_logger, mask_secret, setup_logging,
)


@pytest.fixture
def log_dir(tmp_path):
    """Route package logging to a temporary file, console-only again afterwards"""
    yield tmp_path
    FulfillmentLogger(log_dir="").configure()


def _read_log(log_dir) -> str:
    for handler in logging.getLogger(PACKAGE_LOGGER).handlers:
        handler.flush()
    return (log_dir / LOG_FILE_NAME).read_text(encoding="utf-8")


class TestLoggerHierarchy:
    """Module loggers share the package handlers"""

    def test_module_logger_has_no_handlers_of_its_own(self):
        logger = get_logger("cj_fulfillment.services.status_sync")

        assert logger.name == "cj_fulfillment.services.status_sync"
        assert logger.handlers == []
        assert logger.propagate is True
        assert logging.getLogger(PACKAGE_LOGGER).handlers

    def test_foreign_names_are_nested_under_package(self):
        assert get_logger("worker").name == "cj_fulfillment.worker"
        assert get_logger(PACKAGE_LOGGER).name == PACKAGE_LOGGER

    def test_default_name_is_callers_module(self):
        assert get_logger().name == f"{PACKAGE_LOGGER}.{__name__}"

    def test_empty_log_dir_is_console_only(self):
        logger = FulfillmentLogger(log_dir="").configure()

        assert len(logger.handlers) == 1
        assert logger.propagate is False


class TestLogFile:
    """Single rotating file for the whole package"""

    def test_all_modules_write_one_file(self, log_dir):
        setup_logging(log_dir=str(log_dir))

        get_logger("cj_fulfillment.suppliers.cj_client").info("alpha")
        get_logger("cj_fulfillment.services.scheduler").warning("beta")

        text = _read_log(log_dir)
        assert "alpha" in text
        assert "beta" in text
        assert [path.name for path in log_dir.iterdir()] == [LOG_FILE_NAME]

    def test_level_override(self, log_dir):
        setup_logging(level="warning", log_dir=str(log_dir))

        get_logger("cj_fulfillment.core").info("quiet")
        get_logger("cj_fulfillment.core").error("loud")

        text = _read_log(log_dir)
        assert "quiet" not in text
        assert "loud" in text

    def test_debug_format_includes_function(self, log_dir):
        setup_logging(level="DEBUG", log_dir=str(log_dir), debug_mode=True)

        get_logger("cj_fulfillment.core").debug("detail")

        assert "test_debug_format_includes_function:" in _read_log(log_dir)

    def test_credentials_are_masked(self, log_dir):
        setup_logging(log_dir=str(log_dir))
        logger = get_logger("cj_fulfillment.auth")

        logger.info("Headers: CJ-Access-Token: abcdefghijklmnop")
        logger.info('Body: {"email": "ops@example.com", "password": "hunter2hunter2"}')
        logger.info("Refreshing with refreshToken=%s", "refresh-token-value")

        text = _read_log(log_dir)
        assert "abcdefghijklmnop" not in text
        assert "CJ-Access-Token: abcd...mnop" in text
        assert "hunter2hunter2" not in text
        assert "ops@example.com" in text
        assert "refresh-token-value" not in text
        assert "refreshToken=refr...alue" in text


@pytest.mark.parametrize("value, masked", [
    (None, "(not set)"),
    ("", "(not set)"),
    ("short", "****"),
    ("abcdefghijkl", "abcd...ijkl"),
])
def test_mask_secret(value, masked):
    assert mask_secret(value) == masked
