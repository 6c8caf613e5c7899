#!/usr/bin/env python3
"""
Logging utilities for the GLOF risk analysis.

This module provides:
1. Consistent logging setup across the application
2. Decorators for structured logging of pipeline steps
3. Helper methods for common logging patterns
"""
import logging
import os
import sys
import functools
import time
from typing import Dict, Any, Optional, Callable, Tuple, Type, TypeVar

# Type variables for callable
F = TypeVar('F', bound=Callable[..., Any])

DEFAULT_LOGGER_NAME = 'GLOF_Risk'
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class LoggerProvider:
    """
    Provides centralized access to the application logger.

    All components share one logger instance; it is created lazily with a
    stdout handler the first time it is requested.
    """
    _logger = None

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get the application logger instance.

        Returns:
            The application logger
        """
        if cls._logger is None:
            cls._logger = logging.getLogger(DEFAULT_LOGGER_NAME)
            if not cls._logger.handlers:
                handler = logging.StreamHandler(sys.stdout)
                handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
                cls._logger.addHandler(handler)
                cls._logger.setLevel(logging.INFO)

        return cls._logger


def get_logger() -> logging.Logger:
    """Get the application logger."""
    return LoggerProvider.get_logger()


# Initialize logger for module-level functions to use
logger = get_logger()


def log_step(
    step_name: str = None,
    warning_exceptions: Tuple[Type[Exception], ...] = ()
) -> Callable[[F], F]:
    """
    Decorator to log the start and end of a step with timing information.

    Can be used with or without a step name:

    @log_step
    def my_func():
        ...

    @log_step("Preparing lake predictors")
    def my_func():
        ...

    Args:
        step_name: Optional name of the processing step. If None, function name is used.
        warning_exceptions: Exceptions that still leave a usable result; they are
            re-raised but the step is logged as completed with warnings

    Returns:
        Decorated function that logs step start and end
    """
    def decorator(func: F) -> F:
        name = step_name if isinstance(step_name, str) else func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            log = get_logger()
            log.info(f"Starting step: {name}")
            start_time = time.time()
            status = "failed"
            try:
                result = func(*args, **kwargs)
                status = "completed successfully"
            except warning_exceptions as e:
                log.warning(f"Warning in step {name}: {str(e)}")
                status = "completed with warnings"
                raise
            except Exception as e:
                log.error(f"Error in step {name}: {str(e)}")
                raise
            finally:
                elapsed = time.time() - start_time
                log.info(f"Step {name} {status} in {elapsed:.2f} seconds")

            return result

        return wrapper

    # Used without arguments: @log_step
    if callable(step_name):
        return decorator(step_name)

    return decorator


class LoggingManager:
    """
    Manages logging configuration and provides utility methods for logging.
    """

    @staticmethod
    def setup_logging(
        logger_name: str = DEFAULT_LOGGER_NAME,
        log_level: int = logging.INFO,
        log_file: Optional[str] = None,
        suppress_warnings: bool = False,
        log_format: str = DEFAULT_LOG_FORMAT
    ) -> logging.Logger:
        """
        Set up logging configuration.

        Args:
            logger_name: Name of the logger
            log_level: Logging level (int or level name)
            log_file: Path to log file (if None, logs to console only)
            suppress_warnings: Whether to suppress python warnings
            log_format: Format string for log messages

        Returns:
            Configured logger instance
        """
        if isinstance(log_level, str):
            log_level = getattr(logging, log_level.upper(), logging.INFO)

        log = logging.getLogger(logger_name)
        log.setLevel(log_level)

        if log.handlers:
            log.handlers.clear()

        formatter = logging.Formatter(log_format)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        log.addHandler(console_handler)

        if log_file:
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            log.addHandler(file_handler)

        if suppress_warnings:
            import warnings
            warnings.filterwarnings('ignore')

        # Update the shared logger
        LoggerProvider._logger = log

        return log

    @staticmethod
    def add_file_handler(log: logging.Logger, log_file: str) -> logging.Handler:
        """
        Attach a file handler using the standard format.

        Args:
            log: Logger instance
            log_file: Path to the log file

        Returns:
            The attached handler, so callers can remove it again
        """
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        log.addHandler(handler)
        return handler

    @staticmethod
    def log_dataframe_info(
        log: logging.Logger,
        df_name: str,
        df: Any,
        include_stats: bool = False
    ) -> None:
        """
        Log information about a pandas DataFrame.

        Args:
            log: Logger instance
            df_name: Name of the DataFrame
            df: The pandas DataFrame
            include_stats: Whether to include basic statistics
        """
        log.info(f"DataFrame '{df_name}' shape: {df.shape}")
        log.debug(f"DataFrame '{df_name}' columns: {list(df.columns)}")

        na_counts = df.isna().sum()
        if na_counts.sum() > 0:
            log.info(f"DataFrame '{df_name}' NA counts:\n{na_counts[na_counts > 0]}")

        if include_stats:
            log.info(f"DataFrame '{df_name}' statistics:\n{df.describe().to_string()}")

    @staticmethod
    def log_dict(
        log: logging.Logger,
        title: str,
        data: Dict[str, Any],
        level: str = 'info'
    ) -> None:
        """
        Log a dictionary with a title, one key per line.

        Args:
            log: Logger instance
            title: Title for the log entry
            data: Dictionary to log
            level: Log level ('debug', 'info', 'warning', 'error')
        """
        log_method = getattr(log, level.lower())
        formatted_data = "\n".join([f"  {k}: {v}" for k, v in data.items()])
        log_method(f"{title}:\n{formatted_data}")
