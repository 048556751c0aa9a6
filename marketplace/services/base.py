"""
Base classes and utilities for the service layer.

Every marketplace operation returns a ServiceResult instead of raising for
expected failures, so views and event listeners can branch on ``result.ok``
and serialize the outcome with ``to_dict()``.
"""

import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Generic, Optional, TypeVar

from django.db import DatabaseError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    A result type that encapsulates success or failure from service operations.

    Attributes:
        ok: True if operation succeeded, False otherwise
        value: The success value (present if ok=True)
        error: Error code from ErrorCodes (present if ok=False)
        error_detail: Human-readable error message (present if ok=False)

    Examples:
        >>> result = order_service.confirm_payment(order_id, actor=admin)
        >>> if result.ok:
        ...     order = result.value
        >>> result.error
        'invalid_transition'
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_detail: Optional[str] = None

    def map(self, func: Callable[[T], Any]) -> "ServiceResult":
        """
        Transform the success value if ok=True, otherwise pass through error.

        Args:
            func: Function to apply to the value

        Returns:
            ServiceResult with transformed value or original error
        """
        if self.ok:
            try:
                return service_ok(func(self.value))
            except Exception as e:
                return service_err(ErrorCodes.INTERNAL_ERROR, str(e))
        return self

    def flat_map(self, func: Callable[[T], "ServiceResult"]) -> "ServiceResult":
        """
        Chain service operations that return ServiceResult.

        Args:
            func: Function that takes value and returns ServiceResult

        Returns:
            Result from func if ok=True, otherwise original error
        """
        if self.ok:
            return func(self.value)
        return self

    def to_dict(self) -> dict:
        """
        Convert to the API envelope.

        Returns:
            {"success": True, "data": ...} or
            {"success": False, "error": {"code": ..., "message": ...}}
        """
        if self.ok:
            return {"success": True, "data": self.value}
        return {
            "success": False,
            "error": {"code": self.error, "message": self.error_detail},
        }


def service_ok(value: T) -> ServiceResult[T]:
    """
    Create a successful ServiceResult.

    Example:
        >>> return service_ok({"listing_id": str(listing.id), "new_quantity": 0})
    """
    return ServiceResult(ok=True, value=value)


def service_err(error: str, error_detail: str = "") -> ServiceResult:
    """
    Create a failed ServiceResult.

    Args:
        error: Error code (one of ErrorCodes)
        error_detail: Human-readable error message

    Example:
        >>> return service_err(ErrorCodes.ORDER_NOT_FOUND, f"Order {order_id} does not exist")
    """
    return ServiceResult(ok=False, error=error, error_detail=error_detail or error)


class BaseService:
    """
    Base class for all services providing common functionality.

    Provides:
    - Logging with class name
    - Performance timing decorator
    - Mapping of unexpected exceptions to error results

    Usage:
        class DisputeService(BaseService):
            @BaseService.log_performance
            def get_open_disputes(self):
                self.logger.info("Listing open disputes")
    """

    def __init__(self):
        """Initialize base service with logger."""
        self.logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)

    @staticmethod
    def log_performance(func: Callable) -> Callable:
        """
        Decorator to log execution time and outcome of service methods.

        Successful results are logged at INFO, error results at WARNING and
        raised exceptions at ERROR (then re-raised).
        """

        @wraps(func)
        def wrapper(self, *args, **kwargs):
            start_time = time.time()
            method_name = f"{self.__class__.__name__}.{func.__name__}"

            try:
                self.logger.debug(f"{method_name} started")
                result = func(self, *args, **kwargs)
                elapsed_time = (time.time() - start_time) * 1000

                if isinstance(result, ServiceResult):
                    if result.ok:
                        self.logger.info(f"{method_name} completed successfully in {elapsed_time:.2f}ms")
                    else:
                        self.logger.warning(
                            f"{method_name} failed with error '{result.error}' in {elapsed_time:.2f}ms"
                        )
                else:
                    self.logger.info(f"{method_name} completed in {elapsed_time:.2f}ms")

                return result

            except Exception as e:
                elapsed_time = (time.time() - start_time) * 1000
                self.logger.error(
                    f"{method_name} raised exception after {elapsed_time:.2f}ms: {str(e)}",
                    exc_info=True,
                )
                raise

        return wrapper

    def error_from_exception(self, exc: Exception, context: str) -> ServiceResult:
        """
        Turn an unexpected exception into an error result without losing its kind.

        Database failures become ``storage_failure`` so callers can tell an
        unavailable store apart from a missing record; anything else becomes
        ``internal_error``.

        Args:
            exc: The caught exception
            context: Short description of the operation, used in the log line

        Returns:
            Failed ServiceResult
        """
        if isinstance(exc, DatabaseError):
            self.logger.error(f"Storage failure while {context}: {exc}", exc_info=True)
            return service_err(ErrorCodes.STORAGE_FAILURE, f"Storage failure while {context}: {exc}")

        self.logger.error(f"Unexpected error while {context}: {exc}", exc_info=True)
        return service_err(ErrorCodes.INTERNAL_ERROR, str(exc))


class ErrorCodes:
    """Standard error codes used across marketplace services."""

    # Session errors
    NOT_AUTHENTICATED = "not_authenticated"
    PERMISSION_DENIED = "permission_denied"

    # Lookup errors
    LISTING_NOT_FOUND = "listing_not_found"
    ORDER_NOT_FOUND = "order_not_found"
    DISPUTE_NOT_FOUND = "dispute_not_found"

    # Validation errors
    VALIDATION_ERROR = "validation_error"

    # State errors
    INVALID_TRANSITION = "invalid_transition"
    CONCURRENT_MODIFICATION = "concurrent_modification"

    # Internal errors
    STORAGE_FAILURE = "storage_failure"
    INTERNAL_ERROR = "internal_error"
