"""
Structured logging configuration for the dxf_analysis package.

Provides:
- JSONFormatter    - one JSON object per line, extra fields included
- ConsoleFormatter - coloured human-readable lines with extras inline
- setup_logging    - handlers for the ``dxf_analysis`` logger tree
- log_timing/timed - elapsed-time logging for render and scoring phases
- LogContext       - attach fields (analysis id, file name) to every record

Usage:
    from dxf_analysis.logging_config import setup_logging, LogContext

    setup_logging(level=logging.INFO, json_file="analysis.log.json")

    with LogContext(analysis_id="NR120184"):
        renderer.render(path, doc)
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar, Union

F = TypeVar('F', bound=Callable[..., Any])

PACKAGE_LOGGER = "dxf_analysis"

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {'message', 'asctime'}


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the user supplied ``extra`` fields of a record."""
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRIBUTES}


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Output format:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "...", ...}
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno >= logging.WARNING:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for key, value in record_extras(record).items():
                try:
                    json.dumps(value)
                except (TypeError, ValueError):
                    value = str(value)
                entry[key] = value

        return json.dumps(entry, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter with optional colors.

    Format: [TIME] LEVEL logger: message [extra_key=value ...]
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, show_extra: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.show_extra = show_extra

    def _format_extra(self, record: logging.LogRecord) -> str:
        parts = []
        for key, value in record_extras(record).items():
            if isinstance(value, float):
                parts.append(f"{key}={value:.4g}")
            elif isinstance(value, (list, tuple)) and len(value) > 3:
                parts.append(f"{key}=[...{len(value)} items]")
            else:
                parts.append(f"{key}={value}")
        return f" [{', '.join(parts)}]" if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        level = f"{record.levelname:8}"
        if self.use_colors and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        name = record.name
        if name.startswith(PACKAGE_LOGGER + "."):
            name = name[len(PACKAGE_LOGGER) + 1:]

        line = f"[{stamp}] {level} {name}: {record.getMessage()}"
        if self.show_extra:
            line += self._format_extra(record)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: int = logging.INFO,
    json_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    use_colors: bool = True,
    root_logger: bool = False,
) -> logging.Logger:
    """Configure logging for the dxf_analysis package.

    Args:
        level: Minimum log level (default INFO)
        json_file: Optional path for JSON lines log file
        console: Enable stderr output (default True)
        use_colors: Use ANSI colors in console (default True)
        root_logger: Configure root logger instead of dxf_analysis

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("" if root_logger else PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ConsoleFormatter(use_colors=use_colors))
        logger.addHandler(console_handler)

    if json_file:
        json_handler = logging.FileHandler(Path(json_file), encoding='utf-8')
        json_handler.setLevel(level)
        json_handler.setFormatter(JSONFormatter())
        logger.addHandler(json_handler)

    if not root_logger:
        logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module (typically ``__name__``)."""
    return logging.getLogger(name)


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    **extra_fields: Any
):
    """Context manager logging start, completion and failure of an operation.

    Example:
        with log_timing(logger, "Renderização calibrada", file=path) as timing:
            result = renderer.render(path, doc)

    Yields:
        dict that can be updated with additional fields for the completion record
    """
    timing_info: Dict[str, Any] = {}
    start = time.perf_counter()
    logger.log(level, "Starting: %s", operation,
               extra={"event": "start", "operation": operation, **extra_fields})

    try:
        yield timing_info
    except Exception as e:
        elapsed = time.perf_counter() - start
        logger.error("Failed: %s (%.3fs) - %s", operation, elapsed, e, extra={
            "event": "error",
            "operation": operation,
            "elapsed_seconds": elapsed,
            "error": str(e),
            **extra_fields,
        })
        raise

    elapsed = time.perf_counter() - start
    timing_info['elapsed_seconds'] = elapsed
    logger.log(level, "Completed: %s (%.3fs)", operation, elapsed, extra={
        "event": "complete",
        "operation": operation,
        **extra_fields,
        **timing_info,
    })


def timed(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    operation: Optional[str] = None,
) -> Callable[[F], F]:
    """Decorator logging the execution time of a function.

    Args:
        logger: Logger instance (uses the function's module logger if None)
        level: Log level (default DEBUG)
        operation: Operation name (uses function name if None)
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            func_logger = logger or logging.getLogger(func.__module__)
            with log_timing(func_logger, operation or func.__name__, level):
                return func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


class _ContextFilter(logging.Filter):
    def __init__(self, fields: Dict[str, Any]):
        super().__init__()
        self.fields = fields

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.fields.items():
            setattr(record, key, value)
        return True


class LogContext:
    """Adds common fields to every record of the package loggers in a scope.

    Filters are attached to the package logger's handlers so records from
    child loggers (``dxf_analysis.rendering.calibrated`` ...) get the fields
    too.

    Example:
        with LogContext(analysis_id="abc123", file="NR120184.dxf"):
            logger.info("Renderizando")
    """

    _current: Optional['LogContext'] = None

    def __init__(self, **fields: Any):
        self.fields = fields
        self._previous: Optional['LogContext'] = None
        self._filter = _ContextFilter(fields)
        self._handlers: list = []

    def __enter__(self) -> 'LogContext':
        self._previous = LogContext._current
        LogContext._current = self

        package_logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.addFilter(self._filter)
        self._handlers = list(package_logger.handlers)
        for handler in self._handlers:
            handler.addFilter(self._filter)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        logging.getLogger(PACKAGE_LOGGER).removeFilter(self._filter)
        for handler in self._handlers:
            handler.removeFilter(self._filter)
        self._handlers = []
        LogContext._current = self._previous

    @classmethod
    def current(cls) -> Optional['LogContext']:
        """Get the innermost active context."""
        return cls._current


def configure_default_logging(verbose: bool = False) -> logging.Logger:
    """Configure console logging at DEBUG (verbose) or INFO level."""
    return setup_logging(level=logging.DEBUG if verbose else logging.INFO)
