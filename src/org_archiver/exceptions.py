"""Custom exception hierarchy for the organization archiver."""

from typing import Any, Optional


class ArchiverError(Exception):
    """Base exception for all archiver errors."""

    def __init__(
        self,
        message: str,
        *,
        correlation_id: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Initialize archiver error.

        Args:
            message: Error message
            correlation_id: Optional correlation ID for tracing
            context: Optional context dictionary with additional details
        """
        super().__init__(message)
        self.message = message
        self.correlation_id = correlation_id
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message."""
        parts = [self.message]
        if self.correlation_id:
            parts.append(f"[correlation_id={self.correlation_id}]")
        if self.context:
            parts.append(f"[context={self.context}]")
        return " ".join(parts)


class ConfigurationError(ArchiverError):
    """Configuration and credential errors."""

    pass


class QueryError(ArchiverError):
    """Firestore query errors."""

    pass


class CommitError(ArchiverError):
    """Write batch commit failed against one sink."""

    def __init__(
        self,
        message: str,
        *,
        sink: str,
        batch_number: int,
        correlation_id: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Initialize commit error.

        Args:
            message: Error message
            sink: Which sink failed ("archive" or "source")
            batch_number: 1-based number of the failed batch
            correlation_id: Optional correlation ID for tracing
            context: Optional context dictionary with additional details
        """
        super().__init__(message, correlation_id=correlation_id, context=context)
        self.sink = sink
        self.batch_number = batch_number


class CheckpointError(ArchiverError):
    """Raised when checkpoint operations fail."""

    pass
