"""
Custom Exceptions Module.

This module defines the custom exceptions used throughout the invoice
engine. The pipeline never lets these reach its caller: they are raised
inside a stage and converted into failure reasons or failed recognition
attempts at the stage boundary.

Exception Hierarchy:
    InvoiceEngineError (base)
    ├── InputError
    │   ├── UnsupportedFormatError
    │   └── CorruptedFileError
    ├── OCRError
    │   ├── OCREngineNotAvailableError
    │   ├── OCRProcessingError
    │   └── OCRTimeoutError
    ├── ExtractionError
    └── OutputError
        └── DatabaseError
"""


class InvoiceEngineError(Exception):
    """
    Base exception for all invoice engine errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoiceEngineError):
    """Base exception for input handling errors."""
    pass


class UnsupportedFormatError(InputError):
    """
    Raised when an input payload is not a supported image format.

    Example:
        >>> raise UnsupportedFormatError("HEIF", ["JPEG", "PNG"])
    """

    def __init__(self, file_format: str, supported_formats: list = None):
        message = f"Unsupported input format: '{file_format}'"
        details = {"format": file_format, "supported_formats": supported_formats or []}
        super().__init__(message, details)


class CorruptedFileError(InputError):
    """Raised when a payload cannot be decoded into an image."""

    def __init__(self, source: str, reason: str = None):
        message = f"Corrupted or unreadable input: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# OCR ERRORS
# =============================================================================

class OCRError(InvoiceEngineError):
    """Base exception for recognition errors."""
    pass


class OCREngineNotAvailableError(OCRError):
    """Raised when a configured recognition engine is not available."""

    def __init__(self, engine_name: str, reason: str = None):
        message = f"OCR engine not available: {engine_name}"
        details = {"engine": engine_name, "reason": reason}
        super().__init__(message, details)


class OCRProcessingError(OCRError):
    """Raised when a single recognition attempt fails."""

    def __init__(self, engine_name: str, reason: str = None):
        message = f"OCR processing failed in engine: {engine_name}"
        details = {"engine": engine_name, "reason": reason}
        super().__init__(message, details)


class OCRTimeoutError(OCRError):
    """Raised when a recognition attempt exceeds its time budget."""

    def __init__(self, engine_name: str, timeout_seconds: float):
        message = f"OCR attempt timed out after {timeout_seconds}s: {engine_name}"
        details = {"engine": engine_name, "timeout_seconds": timeout_seconds}
        super().__init__(message, details)


# =============================================================================
# EXTRACTION ERRORS
# =============================================================================

class ExtractionError(InvoiceEngineError):
    """Raised when field extraction hits an unexpected state."""

    def __init__(self, stage: str, reason: str = None):
        message = f"Extraction failed during: {stage}"
        details = {"stage": stage, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# OUTPUT ERRORS
# =============================================================================

class OutputError(InvoiceEngineError):
    """Base exception for output handling errors."""
    pass


class DatabaseError(OutputError):
    """Raised when run record storage fails."""

    def __init__(self, operation: str, reason: str = None):
        message = f"Database operation failed: {operation}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, details)


__all__ = [
    'InvoiceEngineError',
    'InputError',
    'UnsupportedFormatError',
    'CorruptedFileError',
    'OCRError',
    'OCREngineNotAvailableError',
    'OCRProcessingError',
    'OCRTimeoutError',
    'ExtractionError',
    'OutputError',
    'DatabaseError',
]
