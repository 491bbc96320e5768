"""Classify raw transaction-export rows into typed transaction records.

Rows arrive as string-keyed mappings whose column names vary between
export versions, so every field is read through an ordered alias list.
Rows in the skip-set (withdrawals, taxes, processing fees) are dropped
before anything else; the remaining rows are categorized by type label
and kept only if their category serves the requested invoice type.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

import structlog

from gst_invoicer.config.rules_loader import ClassificationRules, load_classification_rules
from gst_invoicer.errors import EmptyResultError, ParseError, ValidationError
from gst_invoicer.models import InvoiceType, TransactionCategory, TransactionRecord

logger = structlog.get_logger(__name__)

UNKNOWN_COUNTERPARTY = "Unknown"

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("Date",),
    "type": ("Transaction Type",),
    "summary": ("Transaction Summary",),
    "amount": ("Amount $", "Amount"),
    "counterparty": ("Agency", "Team", "Account Name"),
    "freelancer": ("Freelancer",),
    "transaction_id": ("Transaction ID", "ID"),
}

DATE_FORMATS = (
    "%Y-%m-%d",
    "%b %d, %Y",  # Jun 15, 2024 (platform export)
    "%B %d, %Y",
    "%m/%d/%Y",
)


def resolve_field(row: Mapping[str, str | None], name: str, default: str | None = None) -> str | None:
    """Return the first non-blank value among the aliases of ``name``."""
    for column in COLUMN_ALIASES[name]:
        value = row.get(column)
        if value is not None and value.strip():
            return value.strip()
    return default


def parse_date(value: str | None, row_number: int | None = None) -> date:
    """Parse a transaction date in any of the accepted export formats."""
    if not value:
        raise ParseError("missing date", row_number=row_number, field="date")

    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ParseError(f"invalid date {value!r}", row_number=row_number, field="date")


def parse_amount(value: str | None, row_number: int | None = None) -> Decimal:
    """Parse a signed USD amount such as ``-12.50``, ``$1,000.00`` or ``(3.00)``."""
    if not value:
        raise ParseError("missing amount", row_number=row_number, field="amount")

    text = value.strip().replace("$", "").replace(",", "").strip()
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1].strip()

    try:
        amount = Decimal(text)
    except InvalidOperation as exc:
        raise ParseError(
            f"invalid amount {value!r}", row_number=row_number, field="amount"
        ) from exc
    if not amount.is_finite():
        raise ParseError(f"invalid amount {value!r}", row_number=row_number, field="amount")

    return -amount if negative else amount


def categorize(
    type_label: str, rules: ClassificationRules | None = None
) -> TransactionCategory | None:
    """Map a type label to its category, or None for skip-set labels."""
    rules = rules or load_classification_rules()
    key = type_label.strip().casefold()

    if key in rules.skip_types:
        return None
    if key in rules.client_earning_types:
        return TransactionCategory.CLIENT_EARNING
    if key in rules.platform_fee_types:
        return TransactionCategory.PLATFORM_FEE
    return TransactionCategory.OTHER


def looks_like_platform_fee(
    type_label: str, summary: str, rules: ClassificationRules | None = None
) -> bool:
    """Content check guarding against mis-typed platform-fee rows."""
    rules = rules or load_classification_rules()
    if type_label.strip().casefold() in rules.fee_sniff_types:
        return True
    folded = summary.casefold()
    return any(marker.casefold() in folded for marker in rules.fee_summary_markers)


def classify(
    row: Mapping[str, str | None],
    invoice_type: InvoiceType,
    *,
    row_number: int | None = None,
    rules: ClassificationRules | None = None,
) -> TransactionRecord | None:
    """Classify one row for ``invoice_type``.

    Returns:
        The transaction record, or None when the row does not belong on
        invoices of this type.
    """
    rules = rules or load_classification_rules()
    type_label = resolve_field(row, "type", "") or ""
    summary = resolve_field(row, "summary", "") or ""

    category = categorize(type_label, rules)
    if category is None or category not in invoice_type.categories:
        return None

    if category is TransactionCategory.PLATFORM_FEE and not looks_like_platform_fee(
        type_label, summary, rules
    ):
        logger.debug("fee_row_rejected", row=row_number, type=type_label)
        return None

    amount = parse_amount(resolve_field(row, "amount"), row_number)
    if category is TransactionCategory.CLIENT_EARNING and amount <= 0:
        # Refunds and adjustments never produce negative earnings lines
        return None

    return TransactionRecord(
        date=parse_date(resolve_field(row, "date"), row_number),
        transaction_id=resolve_field(row, "transaction_id", "") or "",
        transaction_type=type_label,
        summary=summary,
        counterparty=resolve_field(row, "counterparty", UNKNOWN_COUNTERPARTY)
        or UNKNOWN_COUNTERPARTY,
        amount=abs(amount),
        category=category,
        freelancer=resolve_field(row, "freelancer", "") or "",
    )


def ensure_automated(invoice_type: InvoiceType) -> None:
    """Reject invoice types that can only be created by manual entry."""
    if invoice_type.requires_manual_entry:
        raise ValidationError(
            f"{invoice_type.value} invoices ({invoice_type.label}) require manual entry; "
            "transaction import only supports "
            + ", ".join(t.value for t in InvoiceType if not t.requires_manual_entry)
        )


def classify_rows(
    rows: Iterable[Mapping[str, str | None]],
    invoice_type: InvoiceType,
    rules: ClassificationRules | None = None,
) -> list[TransactionRecord]:
    """Classify rows numbered consecutively after a header on line 1."""
    # Row 1 is the header
    return classify_numbered_rows(enumerate(rows, start=2), invoice_type, rules)


def classify_numbered_rows(
    rows: Iterable[tuple[int, Mapping[str, str | None]]],
    invoice_type: InvoiceType,
    rules: ClassificationRules | None = None,
) -> list[TransactionRecord]:
    """Classify every row, keeping those that belong on ``invoice_type`` invoices.

    Each row comes with the line number reported in its ``ParseError``.

    Raises:
        ValidationError: The invoice type is manual-entry only.
        ParseError: A relevant row has an unreadable date or amount.
        EmptyResultError: No row survived filtering.
    """
    ensure_automated(invoice_type)
    rules = rules or load_classification_rules()

    records: list[TransactionRecord] = []
    seen = 0
    for row_number, row in rows:
        seen += 1
        record = classify(row, invoice_type, row_number=row_number, rules=rules)
        if record is not None:
            records.append(record)

    logger.info(
        "rows_classified",
        invoice_type=invoice_type.value,
        rows=seen,
        kept=len(records),
    )

    if not records:
        raise EmptyResultError(
            f"No {invoice_type.label.lower()} transactions found in the export"
        )
    return records
