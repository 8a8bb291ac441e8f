"""JSON logging for the civictrust service."""
from __future__ import annotations

import logging
from typing import Optional

from pythonjsonlogger import jsonlogger

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Third-party loggers that are too chatty at INFO for a per-action service.
_QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def setup_logging(level: str = "INFO", *, env: str | None = None) -> None:
    """Install a single JSON handler on the root logger.

    Every line carries ``service`` and, when given, ``env`` so that records
    from the API, the replay job and the remote sync can be told apart.
    """

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(level.upper())

    static_fields = {"service": "civictrust"}
    if env:
        static_fields["env"] = env
    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            _FORMAT,
            rename_fields={"levelname": "level", "asctime": "ts"},
            static_fields=static_fields,
        )
    )
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level.upper())
    return logger


__all__ = ["setup_logging", "get_logger"]
