"""
debug_trace.py

Debug instrumentation for tracking down crashes.
Enable by setting DEBUG_TRACE = True below.

Trace lines go through the standard logging tree (logger ``mapdraw.trace``)
so they end up in the same handlers as the module loggers.
"""

import logging
import sys
import traceback
from functools import wraps

# Set to True to enable debug tracing
DEBUG_TRACE = True

# Set to True to trace paint events (very verbose)
TRACE_PAINT = False

# Log file (None for stderr only)
LOG_FILE = "mapdraw_debug.log"

LOG_FORMAT = "[%(asctime)s.%(msecs)03d] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

_CATEGORY_LEVELS = {
    "CRASH": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "MAIN": logging.INFO,
}

_trace_log = logging.getLogger("mapdraw.trace")
_file_handler = None


def configure_logging(level: int = logging.INFO, log_file=LOG_FILE):
    """Install stderr and (optionally) file handlers on the root logger."""
    global _file_handler
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if DEBUG_TRACE else level)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    if not any(getattr(h, "_mapdraw", False) for h in root.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setLevel(level)
        stream.setFormatter(formatter)
        stream._mapdraw = True
        root.addHandler(stream)

    if log_file and _file_handler is None:
        try:
            _file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        except OSError as e:
            _trace_log.warning("Cannot open trace log %s: %s", log_file, e)
        else:
            _file_handler.setLevel(logging.DEBUG)
            _file_handler.setFormatter(formatter)
            root.addHandler(_file_handler)


def trace(msg: str, category: str = "INFO"):
    """Log a trace message under ``category``."""
    if not DEBUG_TRACE:
        return
    if category == "PAINT" and not TRACE_PAINT:
        return
    level = _CATEGORY_LEVELS.get(category, logging.DEBUG)
    _trace_log.log(level, "[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Log the exception currently being handled."""
    if not DEBUG_TRACE:
        return
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def trace_call(category: str = "CALL"):
    """Decorator to trace function calls."""
    def decorator(func):
        if not DEBUG_TRACE:
            return func

        @wraps(func)
        def wrapper(*args, **kwargs):
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
                trace(f"<<< {func_name}", category)
                return result
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
        return wrapper
    return decorator


def close_log():
    """Detach and close the trace log file."""
    global _file_handler
    if _file_handler is not None:
        logging.getLogger().removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
