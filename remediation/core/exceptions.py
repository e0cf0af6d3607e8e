"""
Exception hierarchy for the PDF remediation pipeline.

Provides layered exception structure for pipeline errors. Every exception
carries an ErrorKind so job outcomes can report failures without holding
on to exception objects.

Dependencies: None (pure domain layer)
System role: Centralized exception handling across the pipeline
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error taxonomy surfaced in job outcomes and chunk results."""

    MALFORMED_INPUT = "MalformedInput"
    TRANSIENT_SERVICE_ERROR = "TransientServiceError"
    SERVICE_ERROR = "ServiceError"
    REMEDIATION_FAILED = "RemediationFailed"
    INCOMPLETE_MERGE = "IncompleteMerge"
    ENRICHMENT_DEGRADED = "EnrichmentDegraded"
    STORAGE_ERROR = "StorageError"
    CANCELLED = "Cancelled"


class RemediationException(Exception):
    """Base exception for all remediation pipeline errors."""

    kind: ErrorKind = ErrorKind.SERVICE_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class MalformedInputError(RemediationException):
    """Raised when the source document cannot be read or parsed."""

    kind = ErrorKind.MALFORMED_INPUT

    def __init__(
        self,
        message: str,
        input_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if input_key:
            details["input_key"] = input_key
        super().__init__(message, details)


class InvalidInputKeyError(MalformedInputError):
    """Raised when an object key does not follow the input key layout."""


class TransientServiceError(RemediationException):
    """Raised on timeouts or throttling from an external service. Retryable."""

    kind = ErrorKind.TRANSIENT_SERVICE_ERROR

    def __init__(
        self,
        message: str,
        service: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if service:
            details["service"] = service
        super().__init__(message, details)


class ServiceError(RemediationException):
    """Raised when an external service fails permanently."""

    kind = ErrorKind.SERVICE_ERROR


class DocumentServiceError(ServiceError):
    """Raised when structural tagging or text extraction fails."""


class GenerationError(ServiceError):
    """Raised when the generative service returns no usable text."""


class RemediationFailedError(RemediationException):
    """Raised when one or more chunks exhausted their retry budget."""

    kind = ErrorKind.REMEDIATION_FAILED

    def __init__(
        self,
        message: str,
        chunk_indices: list[int],
        details: dict[str, Any] | None = None,
    ) -> None:
        self.chunk_indices = sorted(chunk_indices)
        details = details or {}
        details["chunk_indices"] = self.chunk_indices
        super().__init__(message, details)


class IncompleteMergeError(RemediationException):
    """Raised when a chunk is missing or corrupt at merge time."""

    kind = ErrorKind.INCOMPLETE_MERGE

    def __init__(
        self,
        message: str,
        missing_chunks: list[int] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.missing_chunks = sorted(missing_chunks or [])
        details = details or {}
        if self.missing_chunks:
            details["missing_chunks"] = self.missing_chunks
        super().__init__(message, details)


class EnrichmentDegradedError(RemediationException):
    """Raised when best-effort enrichment fails. Never fatal to a job."""

    kind = ErrorKind.ENRICHMENT_DEGRADED


class BlobStoreError(RemediationException):
    """Raised when blob store operations fail."""

    kind = ErrorKind.STORAGE_ERROR

    def __init__(
        self,
        message: str,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.key = key
        details = details or {}
        if key:
            details["key"] = key
        super().__init__(message, details)


class BlobNotFoundError(BlobStoreError):
    """Raised when a key does not exist in the blob store."""

    def __init__(self, key: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"Blob not found: {key}", key, details)


class JobCancelledError(RemediationException):
    """Raised at a state transition once cancellation has been requested."""

    kind = ErrorKind.CANCELLED

    def __init__(self, job_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["job_id"] = job_id
        super().__init__(f"Job cancelled: {job_id}", details)
