# src/explainit/logging_config.py
import functools
import inspect
import logging
import sys
import time
from pathlib import Path
from typing import Optional

import structlog

# Configure structlog for key-value logging on top of stdlib logging
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
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    log_dir: Optional[Path] = None
) -> None:
    """Setup root logging handlers."""
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(getattr(logging, level.upper()))
        root_logger.addHandler(console_handler)

    if log_file:
        if log_dir is None:
            from explainit.config import resolve_data_dir
            log_dir = resolve_data_dir() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(getattr(logging, level.upper()))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


# Error handling decorator
def with_error_handling(logger_name: str = "error_handler"):
    """Log and re-raise any exception escaping the wrapped function."""
    def decorator(func):
        def _log_failure(e):
            get_logger(logger_name).error(
                "Function execution failed",
                function=func.__name__,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True
            )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    _log_failure(e)
                    raise
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _log_failure(e)
                raise
        return wrapper
    return decorator


# Performance monitoring decorator
def with_performance_logging(logger_name: str = "performance"):
    """Decorator to log function execution time."""
    def decorator(func):
        def _log(start_time, error=None):
            logger = get_logger(logger_name)
            execution_time = f"{time.time() - start_time:.3f}s"
            if error is None:
                logger.info("Function completed", function=func.__name__,
                            execution_time=execution_time)
            else:
                logger.error("Function failed", function=func.__name__,
                             execution_time=execution_time, error=str(error))

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _log(start_time, e)
                    raise
                _log(start_time)
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log(start_time, e)
                raise
            _log(start_time)
            return result
        return wrapper
    return decorator
