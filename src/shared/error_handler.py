"""
Centralized error handling utilities for consistent error management across services.
"""
import inspect
from functools import wraps
from typing import Any, Dict, Optional

from google.api_core import exceptions as gcp_exceptions
from pydantic import ValidationError

from src.shared.exceptions import (
    AutomationError,
    MalformedInputError,
    ResourceNotFoundError,
    TransientStoreError,
)
from src.shared.utils import get_logger

# Store failures that are expected to clear up on redelivery
TRANSIENT_STORE_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.Aborted,
    gcp_exceptions.InternalServerError,
    gcp_exceptions.TooManyRequests,
)


class ErrorHandler:
    """Centralized error handler for services"""

    def __init__(self, logger_name: str):
        self.logger = get_logger(logger_name)

    def log_error(self, operation: str, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        """Log an error without converting it"""
        context = context or {}
        if isinstance(error, AutomationError) and not error.retryable:
            self.logger.warning(f"{type(error).__name__} during {operation}: {error}", extra=context)
        else:
            self.logger.error(f"Error during {operation}: {error}", extra=context, exc_info=True)

    def handle_store_error(self, error: Exception, operation: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Convert Google Cloud store errors into domain errors"""
        context = context or {}

        if isinstance(error, gcp_exceptions.NotFound):
            self.logger.warning(f"Document not found during {operation}: {error}", extra=context)
            raise ResourceNotFoundError(f"Document not found during {operation}", error)

        elif isinstance(error, TRANSIENT_STORE_ERRORS):
            self.logger.error(f"Transient store error during {operation}: {error}", extra=context)
            raise TransientStoreError(f"Store operation failed for {operation}", error)

        elif isinstance(error, gcp_exceptions.GoogleAPICallError):
            self.logger.error(f"Store error during {operation}: {error}", extra=context)
            raise AutomationError(f"Store operation failed for {operation}", error)

        else:
            raise error

    def handle_general_error(self, error: Exception, operation: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Handle general errors with proper logging"""
        context = context or {}

        if isinstance(error, AutomationError):
            # Already a domain error, just log and re-raise
            self.logger.info(f"Known error during {operation}: {error.message}", extra=context)
            raise error

        elif isinstance(error, ValidationError):
            self.logger.error(f"Malformed document during {operation}: {error}", extra=context)
            raise MalformedInputError(f"Malformed document during {operation}", error)

        else:
            # Unknown error, log with full context
            self.logger.error(f"Unexpected error during {operation}: {str(error)}",
                              extra=context, exc_info=True)
            raise AutomationError(f"Unexpected error during {operation}", error)

    def to_domain_error(self, error: Exception, operation: str, context: Optional[Dict[str, Any]] = None) -> AutomationError:
        """Convert any error into a domain error, logging it once"""
        if isinstance(error, AutomationError):
            self.log_error(operation, error, context)
            return error
        try:
            _route_error(self, error, operation, context or {})
        except AutomationError as converted:
            return converted
        return AutomationError(f"Unexpected error during {operation}", error)

    def log_success(self, operation: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Log successful operations"""
        context = context or {}
        self.logger.debug(f"Successfully completed {operation}", extra=context)


def _route_error(error_handler: ErrorHandler, error: Exception, operation: str, context: Dict[str, Any]) -> None:
    if isinstance(error, gcp_exceptions.GoogleAPICallError):
        error_handler.handle_store_error(error, operation, context)
    else:
        error_handler.handle_general_error(error, operation, context)


def handle_service_errors(operation: str):
    """Decorator for handling service method errors"""
    def decorator(func):
        @wraps(func)
        async def async_wrapper(self, *args, **kwargs):
            error_handler = getattr(self, '_error_handler', None)
            if not error_handler:
                error_handler = ErrorHandler(self.__class__.__name__)

            try:
                result = await func(self, *args, **kwargs)
                error_handler.log_success(operation, {"function_args": str(args)[:100]})
                return result
            except Exception as e:
                context = {
                    "method": func.__name__,
                    "function_args": str(args)[:100],
                    "function_kwargs": str(kwargs)[:100]
                }
                _route_error(error_handler, e, operation, context)

        @wraps(func)
        def sync_wrapper(self, *args, **kwargs):
            error_handler = getattr(self, '_error_handler', None)
            if not error_handler:
                error_handler = ErrorHandler(self.__class__.__name__)

            try:
                result = func(self, *args, **kwargs)
                error_handler.log_success(operation, {"function_args": str(args)[:100]})
                return result
            except Exception as e:
                context = {
                    "method": func.__name__,
                    "function_args": str(args)[:100],
                    "function_kwargs": str(kwargs)[:100]
                }
                _route_error(error_handler, e, operation, context)

        # Return appropriate wrapper based on whether function is async
        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper

    return decorator
