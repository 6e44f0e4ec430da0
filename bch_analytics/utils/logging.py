"""Structured logging setup for the pipeline and CLI."""

import sys
import logging
import logging.handlers
from pathlib import Path
from typing import List, Optional
import structlog
from structlog.stdlib import LoggerFactory

from bch_analytics.models.config import PipelineConfig


def build_processors(log_format: str) -> List:
    """Processor chain: stdlib metadata, ISO time, then a JSON or console renderer."""
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.format_exc_info,
    ]
    
    if log_format.lower() == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def setup_logging(config: PipelineConfig) -> Optional[logging.Handler]:
    """
    Route structlog through the stdlib root logger.
    
    Returns:
        The rotating file handler attached for ``config.log_file``, if any
    """
    level = getattr(logging, config.log_level.upper())
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)
    logging.getLogger().setLevel(level)
    
    structlog.configure(
        processors=build_processors(config.log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    
    if not config.log_file:
        return None
    
    Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        config.log_file,
        maxBytes=config.log_max_size_mb * 1024 * 1024,
        backupCount=config.log_backup_count
    )
    handler.setLevel(level)
    logging.getLogger().addHandler(handler)
    return handler
