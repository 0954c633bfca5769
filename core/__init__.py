"""
Core utilities and configuration for the listing ingestion pipeline.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Engine and session factory construction
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration
    retry: Retry policy, async retry combinator and rate limiter

Usage:
    from core.config import settings
    from core.database import create_engine, create_session_factory
    from core.exceptions import ValidationError, CaptureError
    from core.logging import setup_logging
    from core.retry import RetryPolicy, RateLimiter, retry_async

Example:
    setup_logging()

    engine = create_engine()
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        ...
"""

__all__ = [
    "settings",
    "create_engine",
    "create_session_factory",
    "setup_logging",
    "RetryPolicy",
    "RateLimiter",
    "retry_async",
    # Exceptions
    "PipelineException",
    "CaptureError",
    "TransformationError",
    "ValidationError",
    "PipelineStateError",
    "EnrichmentError",
    "GeocodingError",
    "MediaDownloadError",
    "StorageError",
    "ArtifactNotFoundError",
    "DatabaseError",
    "ConflictError",
    "NotFoundError",
    "RetryableError",
    "NonRetryableError",
    "NetworkError",
    "RateLimitError",
    "SchemaValidationError",
]
