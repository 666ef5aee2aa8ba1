"""
Error Handling

Centralized error handling utilities.
"""

from typing import Callable, TypeVar, Optional
from functools import wraps
import asyncio
import logging
import traceback

from ..domain.exceptions import DomainException


logger = logging.getLogger(__name__)

T = TypeVar("T")


def error_to_reason(error: BaseException) -> str:
    """Render an exception as the reason text of a failed unit."""
    if isinstance(error, DomainException):
        return error.message
    if isinstance(error, asyncio.TimeoutError):
        return "Timed out"
    text = str(error).strip()
    return f"{error.__class__.__name__}: {text}" if text else error.__class__.__name__


def _log_failure(func_name: str, error: Exception, log_level: int) -> None:
    if isinstance(error, DomainException):
        logger.log(log_level, f"{func_name} failed: {error}")
        if error.details:
            logger.log(log_level, f"Details: {error.details}")
    else:
        logger.log(log_level, f"{func_name} unexpected error: {error}")
        logger.debug(traceback.format_exc())


def handle_exception(
    default_return: T,
    log_level: int = logging.ERROR,
    reraise: bool = False
) -> Callable:
    """
    Decorator for handling exceptions with consistent logging.

    Works on plain functions and coroutine functions.

    Args:
        default_return: Value to return on exception
        log_level: Logging level for caught exceptions
        reraise: Whether to reraise the exception after logging
    """
    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    _log_failure(func.__name__, e, log_level)
                    if reraise:
                        raise
                    return default_return
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _log_failure(func.__name__, e, log_level)
                if reraise:
                    raise
                return default_return
        return wrapper
    return decorator


class ErrorHandler:
    """
    Context manager for error handling.

    Usage:
        with ErrorHandler(logger, context="analytics", suppress=True) as handler:
            ...
        if handler.has_error:
            ...
    """

    def __init__(
        self,
        logger: logging.Logger,
        context: str = "",
        suppress: bool = False,
        log_level: int = logging.ERROR
    ):
        self.logger = logger
        self.context = context
        self.suppress = suppress
        self.log_level = log_level
        self.error: Optional[BaseException] = None
        self.error_message: Optional[str] = None

    def __enter__(self) -> "ErrorHandler":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is None:
            return False

        # Cancellation must always propagate
        if isinstance(exc_val, (asyncio.CancelledError, KeyboardInterrupt)):
            return False

        self.error = exc_val
        self.error_message = str(exc_val)

        if self.context:
            self.logger.log(self.log_level, f"[{self.context}] {exc_val}")
        else:
            self.logger.log(self.log_level, str(exc_val))

        if isinstance(exc_val, DomainException):
            self.logger.debug(f"Details: {exc_val.details}")
        else:
            self.logger.debug(traceback.format_exc())

        return self.suppress

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def is_recoverable(self) -> bool:
        if self.error is None:
            return True
        if isinstance(self.error, DomainException):
            return self.error.is_recoverable
        return False
