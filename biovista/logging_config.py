"""
Logging Configuration Module for BioVista
=========================================
Provides logging setup with colored console output, rotating files,
structured (JSON) records and specialized loggers for the core components.
"""

import logging
import logging.handlers
import sys
import json
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from functools import wraps

import colorlog
from pythonjsonlogger import jsonlogger

from biovista.config import Config

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Fields added by LogContext; each thread and task sees its own value
_log_context: ContextVar[Dict[str, Any]] = ContextVar('biovista_log_context', default={})


class BioVistaFormatter(logging.Formatter):
    """Custom formatter for BioVista logs"""

    def __init__(self, include_color: bool = True, fmt: str = DEFAULT_FORMAT):
        super().__init__()
        self.include_color = include_color

        if self.include_color:
            self.formatter = colorlog.ColoredFormatter(
                f'%(log_color)s{fmt}%(reset)s',
                datefmt='%Y-%m-%d %H:%M:%S',
                log_colors={
                    'DEBUG': 'cyan',
                    'INFO': 'green',
                    'WARNING': 'yellow',
                    'ERROR': 'red',
                    'CRITICAL': 'red,bg_white',
                }
            )
        else:
            self.formatter = logging.Formatter(
                fmt,
                datefmt='%Y-%m-%d %H:%M:%S'
            )

    def format(self, record):
        return self.formatter.format(record)


class StructuredFormatter(logging.Formatter):
    """JSON structured formatter for machine-readable logs"""

    EXTRA_FIELDS = ('dataset_name', 'session_id', 'variable', 'operation')

    def format(self, record):
        log_obj = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_obj[name] = getattr(record, name)

        if record.exc_info:
            log_obj['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextFilter(logging.Filter):
    """Copies the active LogContext fields onto records that lack them"""

    def filter(self, record):
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logging(log_level: str = 'INFO',
                  log_dir: Optional[Path] = None,
                  console_output: bool = True,
                  file_output: bool = True,
                  structured_logs: bool = False,
                  max_file_size_mb: int = 10,
                  backup_count: int = 5,
                  log_format: str = DEFAULT_FORMAT) -> logging.Logger:
    """Setup logging configuration for BioVista

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (default: biovista_results/logs)
        console_output: Enable console logging
        file_output: Enable file logging
        structured_logs: Use JSON structured logging
        max_file_size_mb: Size at which the log file is rotated
        backup_count: Number of rotated files kept
        log_format: Format of plain-text records

    Returns:
        Logger instance
    """
    level = getattr(logging, log_level.upper())
    context_filter = ContextFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    root_logger.handlers.clear()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.addFilter(context_filter)

        if structured_logs:
            console_handler.setFormatter(jsonlogger.JsonFormatter(
                '%(asctime)s %(name)s %(levelname)s %(message)s'
            ))
        else:
            console_handler.setFormatter(BioVistaFormatter(include_color=True, fmt=log_format))

        root_logger.addHandler(console_handler)

    if file_output:
        if log_dir is None:
            log_dir = Path("biovista_results/logs")
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        main_log_file = log_dir / f"biovista_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.handlers.RotatingFileHandler(
            main_log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.addFilter(context_filter)

        if structured_logs:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(BioVistaFormatter(include_color=False, fmt=log_format))

        root_logger.addHandler(file_handler)

    create_specialized_loggers(log_level)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Level: {log_level}, Console: {console_output}, File: {file_output}")

    return logger


def setup_logging_from_config(config: Config) -> logging.Logger:
    """Setup logging from the logging section of a BioVista configuration"""
    settings = config.logging
    return setup_logging(
        log_level=settings.level,
        log_dir=settings.file_path,
        console_output=settings.console_output,
        file_output=settings.file_output,
        structured_logs=settings.structured_logs,
        max_file_size_mb=settings.max_file_size_mb,
        backup_count=settings.backup_count,
        log_format=settings.format,
    )


def create_specialized_loggers(log_level: str):
    """Create specialized loggers for the core components"""
    level = getattr(logging, log_level.upper())

    # Data logger - ingestion and resolution
    logging.getLogger('biovista.data').setLevel(level)

    # Analysis logger - statistics and column detection
    logging.getLogger('biovista.analysis').setLevel(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance

    Args:
        name: Logger name (default: caller's module)
    """
    if name is None:
        import inspect
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get('__name__', 'biovista')

    return logging.getLogger(name)


def get_data_logger() -> logging.Logger:
    """Get the data-specific logger"""
    return logging.getLogger('biovista.data')


def get_analysis_logger() -> logging.Logger:
    """Get the analysis-specific logger"""
    return logging.getLogger('biovista.analysis')


def log_function_call(func: Optional[Callable] = None,
                      log_args: bool = False,
                      log_result: bool = False,
                      log_time: bool = True):
    """Decorator to log function calls

    Args:
        func: Function to decorate
        log_args: Log function arguments
        log_result: Log function result
        log_time: Log execution time
    """
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            logger = get_logger(f.__module__)

            msg = f"Calling {f.__name__}"
            if log_args:
                msg += f" with args={args}, kwargs={kwargs}"
            logger.debug(msg)

            start_time = datetime.now()
            try:
                result = f(*args, **kwargs)
            except Exception as e:
                duration = (datetime.now() - start_time).total_seconds()
                logger.error(f"{f.__name__} failed after {duration:.2f}s: {str(e)}")
                raise

            duration = (datetime.now() - start_time).total_seconds()
            msg = f"{f.__name__} completed"
            if log_time:
                msg += f" in {duration:.2f}s"
            if log_result:
                msg += f" with result={result}"
            logger.debug(msg)
            return result

        return wrapper

    if func is None:
        return decorator
    return decorator(func)


class LogContext:
    """Context manager for adding context to logs

    Fields are visible only to records emitted from the current thread (or
    asyncio task) and are applied by handlers carrying a ContextFilter.
    Explicit ``extra`` values on a record take precedence.
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
        self._token = None


def current_log_context() -> Dict[str, Any]:
    """Fields of the LogContext blocks active in the calling thread"""
    return dict(_log_context.get())


def configure_external_loggers(level: str = 'WARNING'):
    """Configure logging levels for external libraries"""
    for logger_name in ('openpyxl', 'matplotlib', 'PIL', 'numexpr'):
        logging.getLogger(logger_name).setLevel(getattr(logging, level.upper()))


def log_data_processing(operation: str, dataset_name: str, **kwargs):
    """Log data processing operations

    Args:
        operation: Operation being performed
        dataset_name: Name of the dataset
        **kwargs: Additional parameters to log
    """
    logger = get_data_logger()
    logger.info(f"Data operation: {operation}", extra={'dataset_name': dataset_name, **kwargs})


configure_external_loggers()
