"""
Logging configuration for tracksync.
Uses loguru for enhanced logging capabilities.
"""

import sys
from pathlib import Path
from typing import Mapping
from loguru import logger

from tracksync.config import SyncConfig


SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "cookie"}


def setup_logging(config: SyncConfig, console: bool = True) -> None:
    """
    Configure loguru sinks: optional colourised console and a rotating file.

    Every record carries the tenant it belongs to; records outside a run
    show "-".
    """
    logger.remove()
    logger.configure(extra={"tenant_id": "-"})

    if console:
        logger.add(
            sys.stdout,
            format=(
                "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
                "<cyan>{extra[tenant_id]}</cyan> | <level>{message}</level>"
            ),
            level=config.log_level,
            colorize=True,
        )

    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # `tracksync logs` tails this file
    logger.add(
        str(log_path),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[tenant_id]} | {name}:{function}:{line} | {message}",
        level=config.log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        enqueue=True,
    )

    logger.debug(f"Logging to {log_path} at {config.log_level}")


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of request headers safe to log."""
    return {
        key: "[FILTERED]" if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


class RunLogger:
    """Context logger for one tenant sync run."""

    def __init__(self, run_id: str, tenant_id: str = "-"):
        self.run_id = run_id
        self.tenant_id = tenant_id
        self._logger = logger.bind(run_id=run_id, tenant_id=tenant_id)

    def _prefix(self, message: str) -> str:
        return f"[Run:{self.run_id[:8]}] {message}"

    def info(self, message: str, **kwargs):
        self._logger.info(self._prefix(message), **kwargs)

    def debug(self, message: str, **kwargs):
        self._logger.debug(self._prefix(message), **kwargs)

    def warning(self, message: str, **kwargs):
        self._logger.warning(self._prefix(message), **kwargs)

    def error(self, message: str, **kwargs):
        self._logger.error(self._prefix(message), **kwargs)

    def exception(self, message: str, **kwargs):
        self._logger.exception(self._prefix(message), **kwargs)
