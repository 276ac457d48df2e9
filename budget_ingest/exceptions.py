"""
Ingestion Errors

Fatal errors abort an upload before any catalog write. Per-item errors are
collected by the pipeline and reported alongside partial progress.
"""

from typing import Optional


class IngestionError(Exception):
    """Base exception for budget ingestion errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(IngestionError):
    """Raised when configuration is invalid or missing."""
    pass


class UnsupportedFormat(IngestionError):
    """Raised when the declared media type is not accepted for extraction."""

    def __init__(self, declared_type: str, accepted: tuple = ()):
        message = f"Unsupported document format: {declared_type or 'unknown'}"
        if accepted:
            message += f" (accepted: {', '.join(accepted)})"
        super().__init__(message)
        self.declared_type = declared_type


class ExtractionFailure(IngestionError):
    """Raised when OCR or text decoding fails (timeouts included)."""
    pass


class SupplierNotResolved(IngestionError):
    """Raised when no supplier can be determined for the uploaded quote."""
    pass


class CatalogStoreError(IngestionError):
    """Raised by catalog store clients when a read or write fails."""
    pass


class PerItemResolutionError(IngestionError):
    """A single candidate could not be matched or written to the catalog."""

    def __init__(self, item_description: str, message: str,
                 original_error: Optional[Exception] = None):
        super().__init__(message, original_error)
        self.item_description = item_description


class LinkError(PerItemResolutionError):
    """A resolved material could not be linked to the target stage."""
    pass
