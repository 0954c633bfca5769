"""
Custom exceptions for the ingestion pipeline with structured error context.

Each exception carries context information for debugging and for the
structured `{kind, details}` results returned by the trigger surface.

Exception Hierarchy:
    PipelineException (base)
    ├── CaptureError
    ├── TransformationError
    │   ├── ValidationError
    │   │   └── SchemaValidationError
    │   └── PipelineStateError
    ├── EnrichmentError
    │   ├── GeocodingError
    │   └── MediaDownloadError
    ├── StorageError
    │   └── ArtifactNotFoundError
    ├── DatabaseError
    ├── ConflictError
    ├── NotFoundError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class PipelineException(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (source, item, stage...)
        original_exception: The original exception that was caught (if any)
    """

    kind = "pipeline_error"

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Capture Errors
# ============================================================================

class CaptureError(PipelineException):
    """
    External source unreachable or raw document malformed.

    Recorded on the metadata row; the item is excluded from further stages.

    Context should include:
        - source: Capture source
        - source_item_id: Item identifier (if known)
    """
    kind = "capture_error"


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(PipelineException):
    """Base exception for transformation failures."""
    kind = "transformation_error"


class ValidationError(TransformationError):
    """
    Stage-1 or Stage-2 structural violation.

    Aborts the current run and leaves prior canonical state untouched.

    Context should include:
        - stage: curating or canonicalizing
        - errors: List of violation messages
    """
    kind = "validation_error"


class PipelineStateError(TransformationError):
    """Illegal pipeline state transition (programming error)."""
    kind = "state_error"


# ============================================================================
# Enrichment Errors
# ============================================================================

class EnrichmentError(PipelineException):
    """
    Best-effort enrichment failure.

    Never aborts an item; the orchestrator turns it into a warning.
    """
    kind = "enrichment_warning"


class MediaDownloadError(EnrichmentError):
    """
    Context should include:
        - url: Media URL
        - status_code: HTTP status code (if applicable)
    """
    pass


# ============================================================================
# Storage / Database Errors
# ============================================================================

class StorageError(PipelineException):
    """Blob store read/write failure."""
    kind = "storage_error"


class ArtifactNotFoundError(StorageError):
    """No blob exists at the requested path."""
    kind = "artifact_not_found"


class DatabaseError(PipelineException):
    """
    Exception raised when database operations fail.

    Context should include:
        - operation: Type of database operation (INSERT, UPDATE, UPSERT)
        - table_name: Name of the table
    """
    kind = "database_error"


# ============================================================================
# Caller-facing non-fatal conditions
# ============================================================================

class ConflictError(PipelineException):
    """
    Duplicate capture key or already-transformed item.

    Surfaced to callers as an "already exists" result, not a failure.
    """
    kind = "conflict"


class NotFoundError(PipelineException):
    """Requested item, zone or job does not exist."""
    kind = "not_found"


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(PipelineException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """
    pass


class NonRetryableError(PipelineException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Malformed requests (HTTP 4xx)
    - Invalid data format
    """
    pass


# ============================================================================
# Specific Errors
# ============================================================================

class NetworkError(RetryableError, EnrichmentError):
    """Transport-level failures that should be retried."""
    pass


class RateLimitError(RetryableError, EnrichmentError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class GeocodingError(NonRetryableError, EnrichmentError):
    """Geocoder rejected the request (malformed input)."""
    pass


class SchemaValidationError(NonRetryableError, ValidationError):
    """Raw document does not match the source schema."""
    pass
