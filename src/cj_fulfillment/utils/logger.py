"""
Logging configuration for CJ Fulfillment.

Every module logger is a child of the ``cj_fulfillment`` package logger, which
owns the handlers: colored console output plus a rotating
``cj_fulfillment.log`` file. ``LOG_LEVEL``, ``LOG_DIR`` and ``DEBUG_MODE``
provide the defaults; an empty ``LOG_DIR`` keeps logging on the console only.

Supplier credentials and tokens are masked before a handler writes a record.
"""

import logging
import logging.handlers
import os
import re
import sys
from pathlib import Path
from typing import Optional

import colorlog


PACKAGE_LOGGER = "cj_fulfillment"
LOG_FILE_NAME = f"{PACKAGE_LOGGER}.log"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEBUG_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
PLAIN_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s - %(message)s"

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

# Header names and JSON/form keys whose values are credentials
_SECRET_PATTERN = re.compile(
    r"((?:CJ-Access-Token|CJ-Access-Sign|accessToken|refreshToken|password|apiKey|apiSecret)"
    r"[\"']?\s*[:=]\s*[\"']?)([^\s\"',}]+)",
    re.IGNORECASE,
)


def mask_secret(value: Optional[str]) -> str:
    """Mask a secret for display."""
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


class SecretMaskingFilter(logging.Filter):
    """Replaces credential values in the formatted message with a masked form."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _SECRET_PATTERN.sub(lambda m: m.group(1) + mask_secret(m.group(2)), message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class FulfillmentLogger:
    """
    Builds the handlers of the package logger.

    Args:
        level: Level name; defaults to ``LOG_LEVEL`` or INFO
        log_dir: Directory for the rotating log file; defaults to ``LOG_DIR``
            or ``./logs``. Empty disables file logging.
        debug_mode: Include function and line in every record; defaults to
            ``DEBUG_MODE``
    """

    def __init__(self, level: Optional[str] = None, log_dir: Optional[str] = None,
                 debug_mode: Optional[bool] = None):
        self.level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
        self.log_dir = os.getenv("LOG_DIR", "./logs") if log_dir is None else log_dir
        if debug_mode is None:
            debug_mode = os.getenv("DEBUG_MODE", "false").lower() == "true"
        self.debug_mode = debug_mode
        self.logger = logging.getLogger(PACKAGE_LOGGER)

    @property
    def record_format(self) -> str:
        return DEBUG_FORMAT if self.debug_mode else PLAIN_FORMAT

    def configure(self) -> logging.Logger:
        """Replace the package logger's handlers and return it."""
        self.logger.setLevel(getattr(logging, self.level, logging.INFO))

        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)

        self.logger.addHandler(self._console_handler())
        if self.log_dir:
            self.logger.addHandler(self._file_handler())

        self.logger.propagate = False
        return self.logger

    def _console_handler(self) -> logging.Handler:
        handler = colorlog.StreamHandler(sys.stdout)
        handler.setFormatter(colorlog.ColoredFormatter(
            "%(log_color)s" + self.record_format,
            datefmt=DATE_FORMAT,
            log_colors=LOG_COLORS,
        ))
        handler.addFilter(SecretMaskingFilter())
        return handler

    def _file_handler(self) -> logging.Handler:
        Path(self.log_dir).mkdir(parents=True, exist_ok=True)

        # 5MB per file, keep 5 files
        handler = logging.handlers.RotatingFileHandler(
            os.path.join(self.log_dir, LOG_FILE_NAME),
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        handler.setFormatter(logging.Formatter(self.record_format, datefmt=DATE_FORMAT))
        handler.addFilter(SecretMaskingFilter())
        return handler


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the package logger.

    Names outside the package are nested under it so their records reach
    the same handlers. The package logger is configured from the
    environment on first use.

    Args:
        name: Logger name. If None, uses the caller's module name.
    """
    if name is None:
        frame = sys._getframe(1)
        name = frame.f_globals.get('__name__', PACKAGE_LOGGER)

    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"

    if not logging.getLogger(PACKAGE_LOGGER).handlers:
        FulfillmentLogger().configure()

    return logging.getLogger(name)


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None,
                  debug_mode: Optional[bool] = None) -> logging.Logger:
    """
    Setup application-wide logging configuration.

    This should be called once at application startup. Arguments override
    the environment.
    """
    logger = FulfillmentLogger(level, log_dir, debug_mode).configure()
    logger.info("Logging system initialized")
    logger.debug(f"Log level: {logging.getLevelName(logger.level)}")
    logger.debug(f"Handlers: {[h.__class__.__name__ for h in logger.handlers]}")
    return logger
