"""structlog events rendered as JSON lines by stdlib handlers.

Layout under ``$STREAM_ROUTER_HOME/logs`` (or ``./logs``)::

    router.log          INFO and above from every component
    error.log           ERROR and above
    routes/<slug>.log   one file per route, written by ``route_logger``
"""

from __future__ import annotations

import logging
import logging.config
import os
import re
from pathlib import Path
from typing import Any, Iterable

import structlog

APP_LOGGER = "stream_router"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(threadName)s %(message)s"

_configured = False


def _default_log_dir() -> Path:
    home = os.environ.get("STREAM_ROUTER_HOME")
    root = Path(home).expanduser() if home else Path.cwd()
    return root.resolve() / "logs"


def _log_slug(name: str) -> str:
    return re.sub(r"[^0-9A-Za-z_-]+", "_", name.strip()) or "route"


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "encoding": "utf-8",
        "formatter": "json",
    }


def _dict_config(log_dir: Path, level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": "pythonjsonlogger.json.JsonFormatter", "fmt": JSON_FORMAT}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "router_file": _file_handler(log_dir / "router.log", "INFO"),
            "error_file": _file_handler(log_dir / "error.log", "ERROR"),
        },
        "loggers": {
            APP_LOGGER: {
                "handlers": ["console", "router_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Install handlers once per process and return the application logger."""

    global _configured
    log_dir = _default_log_dir()
    (log_dir / "routes").mkdir(parents=True, exist_ok=True)

    if not _configured:
        logging.config.dictConfig(_dict_config(log_dir, "DEBUG" if verbose else "INFO"))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                # event dict travels as record.msg; JsonFormatter merges it
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _configured = True
    return structlog.get_logger(APP_LOGGER)


def _attach_route_file(py_logger: logging.Logger, path: Path) -> None:
    target = str(path)
    for handler in py_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.INFO)
    app_handlers = logging.getLogger(APP_LOGGER).handlers
    if app_handlers:
        handler.setFormatter(app_handlers[0].formatter)
    py_logger.addHandler(handler)


def route_logger(route_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to ``route=<name>``; events also land in the route's own file.

    The route logger is a child of the application logger, so every event is
    still written to ``router.log`` and, for errors, ``error.log``.
    """

    configure_logging(verbose)
    path = route_log_path(route_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger_name = f"{APP_LOGGER}.route.{_log_slug(route_name)}"
    _attach_route_file(logging.getLogger(logger_name), path)
    return structlog.get_logger(logger_name).bind(route=route_name)


def route_log_path(route_name: str) -> Path:
    return _default_log_dir() / "routes" / f"{_log_slug(route_name)}.log"


def global_log_path() -> Path:
    return _default_log_dir() / "router.log"


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    if line_count <= 0 or not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_route_logs() -> Iterable[Path]:
    routes_dir = _default_log_dir() / "routes"
    if not routes_dir.exists():
        return []
    return sorted(routes_dir.glob("*.log"))


__all__ = [
    "available_route_logs",
    "configure_logging",
    "global_log_path",
    "route_log_path",
    "route_logger",
    "tail_log",
]
