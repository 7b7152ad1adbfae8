"""Error definitions for the feed aggregator."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Categories of errors that can occur in the aggregator."""

    VALIDATION_ERROR = "validation_error"
    STORAGE_ERROR = "storage_error"
    CONFIGURATION_ERROR = "configuration_error"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BaseError(Exception):
    """Base error class for all feed aggregator errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        error_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize base error.

        Args:
            message: Error message
            category: Error category
            severity: Error severity
            error_id: Optional unique error ID
            details: Optional error details
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.error_id = error_id
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, details={self.details})"


class ValidationError(BaseError):
    """Error raised when a submission breaks a merge rule."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.LOW,
        error_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize validation error."""
        super().__init__(
            message,
            ErrorCategory.VALIDATION_ERROR,
            severity,
            error_id,
            details,
        )


class DuplicateSubmissionError(ValidationError):
    """Item ID was already submitted during this session."""


class ConflictingDatePolicyError(ValidationError):
    """Date approximation was requested for an item that carries its own dates."""


class ApproximationPolicyMismatchError(ValidationError):
    """Date approximation flag differs from the cached entry's flag."""


class ExpiredSubmissionError(ValidationError):
    """Submission expired before it was added."""


class StorageError(BaseError):
    """Error raised when cache store operations fail."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
        error_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize storage error."""
        super().__init__(
            message,
            ErrorCategory.STORAGE_ERROR,
            severity,
            error_id,
            details,
        )


class StoreWriteError(StorageError):
    """Pending entries could not be flushed to the cache store."""


class ConfigurationError(BaseError):
    """Error raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        error_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize configuration error."""
        super().__init__(
            message,
            ErrorCategory.CONFIGURATION_ERROR,
            severity,
            error_id,
            details,
        )
