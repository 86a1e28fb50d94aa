"""
Custom Exceptions Module.

Exceptions raised by the reconciliation pipeline. Value-level problems
(unparseable numbers or dates, rows without an invoice number) are never
raised; they are absorbed into summary counters and report buckets. Only
structural, input and transport failures travel as exceptions, and each of
them is fatal to a single file only.

Exception Hierarchy:
    ReconcilerError (base)
    ├── ConfigurationError
    ├── InputError
    │   ├── UnsupportedFileTypeError
    │   ├── InputFileNotFoundError
    │   └── CorruptedFileError
    ├── StructuralError
    │   ├── HeaderNotDetectedError
    │   └── UnmappedFieldError
    ├── ExecutionTransportError
    └── TemplateStoreError
"""

from typing import List, Optional


class ReconcilerError(Exception):
    """
    Base exception for all reconciliation errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ReconcilerError):
    """Raised when a configuration value is missing or invalid."""

    def __init__(self, key: str, reason: str = None):
        message = f"Invalid configuration value: {key}"
        details = {"key": key, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(ReconcilerError):
    """Base exception for input handling errors."""
    pass


class UnsupportedFileTypeError(InputError):
    """
    Raised when a file with an unsupported extension is provided.

    Example:
        >>> raise UnsupportedFileTypeError(".pdf", [".xlsx", ".csv"])
    """

    def __init__(self, file_type: str, supported_types: list):
        message = f"Unsupported file type: '{file_type}'"
        details = {"file_type": file_type, "supported_types": supported_types}
        super().__init__(message, details)


class InputFileNotFoundError(InputError):
    """Raised when an input workbook cannot be found."""

    def __init__(self, filepath: str):
        message = f"File not found: {filepath}"
        details = {"filepath": filepath}
        super().__init__(message, details)


class CorruptedFileError(InputError):
    """Raised when a workbook cannot be opened or has no readable sheet."""

    def __init__(self, filepath: str, reason: str = None):
        message = f"Corrupted or unreadable file: {filepath}"
        details = {"filepath": filepath, "reason": reason}
        super().__init__(message, details)


# =============================================================================
# STRUCTURAL ERRORS
# =============================================================================

class StructuralError(ReconcilerError):
    """Base exception for files whose layout cannot be understood."""
    pass


class HeaderNotDetectedError(StructuralError):
    """Raised when no header row with the mandatory columns is found."""

    def __init__(self, source: str, reason: str = None):
        message = f"Header row not detected: {source}"
        details = {"source": source, "reason": reason}
        super().__init__(message, details)


class UnmappedFieldError(StructuralError):
    """
    Raised when required canonical fields do not resolve to a column.

    Example:
        >>> raise UnmappedFieldError(["invoice_number"], ["Fatura No"])
    """

    def __init__(self, fields: List[str], labels: Optional[List[str]] = None):
        names = labels or fields
        message = f"Required fields are not mapped: {', '.join(names)}"
        details = {"fields": fields}
        super().__init__(message, details)


# =============================================================================
# EXECUTION ERRORS
# =============================================================================

class ExecutionTransportError(ReconcilerError):
    """Raised when the execution context itself fails."""

    def __init__(self, reason: str = None):
        message = f"Worker error: {reason or 'unknown failure'}"
        details = {"reason": reason}
        super().__init__(message, details)


class TemplateStoreError(ReconcilerError):
    """Raised when the mapping template store cannot be read or written."""

    def __init__(self, operation: str, reason: str = None):
        message = f"Template store operation failed: {operation}"
        details = {"operation": operation, "reason": reason}
        super().__init__(message, details)


__all__ = [
    'ReconcilerError',
    'ConfigurationError',
    'InputError',
    'UnsupportedFileTypeError',
    'InputFileNotFoundError',
    'CorruptedFileError',
    'StructuralError',
    'HeaderNotDetectedError',
    'UnmappedFieldError',
    'ExecutionTransportError',
    'TemplateStoreError',
]
