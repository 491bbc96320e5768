"""GST export invoices from a freelance platform transaction export."""

__version__ = "0.1.0"

from gst_invoicer.aggregator import AggregationMode, aggregate
from gst_invoicer.classifier import classify, classify_rows
from gst_invoicer.config import configure_logging, get_settings
from gst_invoicer.engine import BatchSummary, InvoiceEngine, ManualInvoiceRequest
from gst_invoicer.errors import (
    EmptyResultError,
    InvoicingError,
    ParseError,
    RateLookupError,
    ValidationError,
)
from gst_invoicer.models import (
    Invoice,
    InvoiceType,
    PeriodAggregate,
    TransactionCategory,
    TransactionRecord,
)
from gst_invoicer.pipeline import BatchResult, InvoicePipeline, PipelineContext
from gst_invoicer.profile import BusinessProfile, ProfileStore
from gst_invoicer.rates import ExchangeRateClient, RateCache, RateResolver
from gst_invoicer.words import amount_to_words

__all__ = [
    # Version
    "__version__",
    # Records
    "Invoice",
    "InvoiceType",
    "PeriodAggregate",
    "TransactionCategory",
    "TransactionRecord",
    "BusinessProfile",
    # Pipeline stages
    "classify",
    "classify_rows",
    "AggregationMode",
    "aggregate",
    "ExchangeRateClient",
    "RateCache",
    "RateResolver",
    "InvoiceEngine",
    "ManualInvoiceRequest",
    "BatchSummary",
    "amount_to_words",
    "InvoicePipeline",
    "PipelineContext",
    "BatchResult",
    "ProfileStore",
    # Errors
    "InvoicingError",
    "ParseError",
    "EmptyResultError",
    "RateLookupError",
    "ValidationError",
    # Config
    "get_settings",
    "configure_logging",
]
