"""Exceptions raised by the invoice pipeline."""

from datetime import date
from typing import Any


class InvoicingError(Exception):
    """Base exception for invoice generation errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ParseError(InvoicingError):
    """A row or field of the transaction export could not be interpreted."""

    def __init__(
        self,
        message: str,
        row_number: int | None = None,
        field: str | None = None,
        details: Any = None,
    ):
        if row_number is not None:
            message = f"Row {row_number}: {message}"
        super().__init__(message, details)
        self.row_number = row_number
        self.field = field


class EmptyResultError(InvoicingError):
    """Nothing survived filtering for the requested invoice type."""

    pass


class RateLookupError(InvoicingError):
    """The exchange rate service failed for a request."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        on_date: date | None = None,
        details: Any = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.on_date = on_date


class ValidationError(InvoicingError):
    """Input rejected before any invoice is produced.

    ``field_errors`` maps a field name to its message for field-scoped
    failures (business profile), and is empty otherwise.
    """

    def __init__(self, message: str, field_errors: dict[str, str] | None = None):
        super().__init__(message, field_errors)
        self.field_errors = dict(field_errors or {})
