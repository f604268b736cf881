"""
Logging Setup

structlog events and stdlib log records share one formatter and go to
stderr, leaving stdout to the rendered reports. LOG_FORMAT=json emits one
JSON object per line for log shippers; text is for terminals.
"""

import logging
import sys
from typing import List, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level
from structlog.typing import Processor

from sales_insights.config.settings import get_settings


def _shared_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Route structlog and stdlib logging through a single stderr handler.

    Args:
        log_level: Overrides LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)
        log_format: Overrides LOG_FORMAT (json or text)

    Raises:
        pydantic.ValidationError: if the environment holds invalid settings
    """
    settings = get_settings()
    level_name = (log_level or settings.monitoring.log_level).upper()
    log_format = log_format or settings.monitoring.log_format
    level = getattr(logging, level_name, logging.INFO)

    processors = _shared_processors()
    structlog.configure(
        processors=processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ProcessorFormatter(processor=_renderer(log_format), foreign_pre_chain=processors))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    structlog.get_logger(__name__).debug(
        "Logging configured",
        level=level_name,
        format=log_format,
        environment=settings.app_env,
    )
