"""
Service Errors

Error taxonomy shared by the fee, case and document services, plus the tagged
result every public operation returns.

Internal helpers raise; the public operation boundary (service_operation)
rolls the session back and turns the exception into ServiceResult.failure so
callers never see a raised error from a public operation.
"""
import functools
import logging
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceError(Exception):
    """Base class for recoverable service failures."""
    kind = "error"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ServiceError):
    """Malformed or missing input. Raised before any layout or storage work."""
    kind = "validation"


class NotFoundError(ServiceError):
    """Referenced entity is absent or belongs to another office."""
    kind = "not_found"


class ConflictError(ServiceError):
    """Uniqueness violation. Callers can offer "edit" instead of "retry"."""
    kind = "conflict"


class RenderError(ServiceError):
    """Unexpected failure while laying out or writing a PDF."""
    kind = "render"


@dataclass
class ServiceResult(Generic[T]):
    """Tagged result of a public service operation."""
    ok: bool
    data: Optional[T] = None
    error: Optional[ServiceError] = None

    @classmethod
    def success(cls, data: Any = None) -> "ServiceResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: ServiceError) -> "ServiceResult":
        return cls(ok=False, error=error)

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None


def service_operation(func):
    """
    Boundary for a public service method.

    The wrapped method returns its plain value or raises. Expects the service
    instance to expose the SQLAlchemy session as ``self.db``.
    """
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs) -> ServiceResult:
        try:
            return ServiceResult.success(func(self, *args, **kwargs))
        except ServiceError as e:
            self.db.rollback()
            logger.warning(f"{func.__qualname__} rejected ({e.kind}): {e.message}")
            return ServiceResult.failure(e)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"{func.__qualname__} failed in the storage layer")
            return ServiceResult.failure(ServiceError("Storage error, operation rolled back"))
        except Exception as e:
            self.db.rollback()
            logger.exception(f"{func.__qualname__} failed unexpectedly")
            return ServiceResult.failure(ServiceError(f"Unexpected error, operation rolled back: {e}"))

    return wrapper
