"""structlog setup shared by the runtime, services and stores."""

from __future__ import annotations

import logging
from typing import Any

import structlog

from croptwin.config import LogFormat, Settings, get_settings

# Library loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("sqlalchemy.engine", "asyncpg")

_configured = False


def _renderer(log_format: LogFormat) -> Any:
	if log_format == LogFormat.console:
		return structlog.dev.ConsoleRenderer()
	return structlog.processors.JSONRenderer()


def configure_structured_logging(settings: Settings | None = None) -> None:
	"""Configure stdlib logging and structlog once per process."""
	global _configured
	if _configured:
		return

	settings = settings or get_settings()
	level = logging.getLevelName(settings.log_level.upper())
	if not isinstance(level, int):
		level = logging.INFO

	logging.basicConfig(level=level, format="%(message)s")
	for name in _QUIET_LOGGERS:
		logging.getLogger(name).setLevel(max(level, logging.WARNING))

	structlog.configure(
		processors=[
			structlog.contextvars.merge_contextvars,
			structlog.processors.add_log_level,
			structlog.processors.TimeStamper(fmt="iso", utc=True),
			structlog.processors.StackInfoRenderer(),
			structlog.processors.format_exc_info,
			_renderer(settings.log_format),
		],
		wrapper_class=structlog.make_filtering_bound_logger(level),
		logger_factory=structlog.PrintLoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


def bind_twin_context(twin_id: str, operation: str) -> None:
	"""Tag every following log line in this context with the twin and operation."""
	structlog.contextvars.clear_contextvars()
	structlog.contextvars.bind_contextvars(twin_id=twin_id, operation=operation)
