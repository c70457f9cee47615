"""
Retrieval Logging Configuration
Logging setup for the retrieval engine: JSON or plain stdlib output plus
structlog for cascade step events
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog

# Extra record attributes copied into structured entries
CONTEXT_FIELDS = ('strategy', 'query', 'limit', 'threshold', 'row_count', 'duration', 'error_type')


class RetrievalFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record"""

    def __init__(self):
        super().__init__()
        self.hostname = os.getenv('HOSTNAME', 'localhost')

    def format(self, record):
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'hostname': self.hostname,
            'process_id': os.getpid(),
        }

        for field_name in CONTEXT_FIELDS:
            if hasattr(record, field_name):
                log_entry[field_name] = getattr(record, field_name)

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }

        if record.levelno <= logging.DEBUG:
            log_entry['file'] = record.filename
            log_entry['line'] = record.lineno
            log_entry['function'] = record.funcName

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(
    log_level: str = "INFO",
    enable_console_logging: bool = True,
    enable_structured_logging: bool = True,
    log_file: Optional[str] = None,
    log_rotation_size: int = 10 * 1024 * 1024,  # 10MB
    log_retention_count: int = 5
) -> None:
    """
    Configure root logging and structlog for the retrieval engine

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console_logging: Whether to log to stdout
        enable_structured_logging: Whether to use JSON output
        log_file: Optional path of a rotating log file
        log_rotation_size: Size in bytes for log rotation
        log_retention_count: Number of rotated log files to keep
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if enable_structured_logging:
        formatter = RetrievalFormatter()
    else:
        formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s in %(name)s: %(message)s'
        )

    if enable_console_logging:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=log_rotation_size,
            backupCount=log_retention_count
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.pool').setLevel(logging.WARNING)
    logging.getLogger('aiohttp.access').setLevel(logging.WARNING)

    setup_structured_logging(enable_structured_logging)

    logging.getLogger(__name__).info(
        f"Retrieval logging configured: level={log_level}, "
        f"console_logging={enable_console_logging}, "
        f"structured_logging={enable_structured_logging}"
    )


def setup_structured_logging(render_json: bool = True) -> None:
    """Route structlog events through stdlib logging"""
    renderer = structlog.processors.JSONRenderer() if render_json else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_logging_from_env() -> None:
    """Configure logging from RETRIEVAL_LOG_* environment variables"""
    setup_logging(
        log_level=os.getenv('RETRIEVAL_LOG_LEVEL', 'INFO'),
        enable_console_logging=os.getenv('RETRIEVAL_ENABLE_CONSOLE_LOGGING', 'true').lower() == 'true',
        enable_structured_logging=os.getenv('RETRIEVAL_ENABLE_STRUCTURED_LOGGING', 'true').lower() == 'true',
        log_file=os.getenv('RETRIEVAL_LOG_FILE') or None,
    )


class RetrievalLogContext:
    """Context manager logging an operation's start, finish and duration"""

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        log_level: int = logging.INFO,
        **context
    ):
        self.logger = logger
        self.operation = operation
        self.log_level = log_level
        self.context = context
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.log(self.log_level, f"Starting {self.operation}", extra=dict(self.context))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()
        extra = dict(self.context, duration=duration)

        if exc_type is None:
            self.logger.log(
                self.log_level,
                f"Completed {self.operation} in {duration:.2f}s",
                extra=extra
            )
        else:
            extra['error_type'] = exc_type.__name__
            self.logger.error(
                f"Failed {self.operation} after {duration:.2f}s: {exc_val}",
                extra=extra,
                exc_info=(exc_type, exc_val, exc_tb)
            )
        # Never suppress the exception
        return False
