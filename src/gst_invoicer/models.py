"""Domain records flowing through the invoice pipeline.

Transaction records come out of the classifier, period aggregates out of
the aggregator, and invoices out of the engine. Monetary values are
``Decimal`` throughout; rounding happens only where invoices are built.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

Currency = Literal["USD", "INR"]


class InvoiceType(str, Enum):
    """Invoice series. The value doubles as the invoice number prefix."""

    GT = "GT"  # Platform client earnings, export under LUT
    GRC = "GRC"  # Platform fees, reverse charge self-invoice
    DT = "DT"  # Direct export clients
    G = "G"  # Direct clients, export or domestic

    @property
    def prefix(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return _INVOICE_TYPE_LABELS[self]

    @property
    def categories(self) -> tuple["TransactionCategory", ...]:
        """Transaction categories an automated import may use for this type."""
        return _INVOICE_TYPE_CATEGORIES[self]

    @property
    def requires_manual_entry(self) -> bool:
        """True when no transaction-export path exists for this type."""
        return not self.categories


class TransactionCategory(str, Enum):
    """Semantic category of a classified transaction row."""

    CLIENT_EARNING = "CLIENT_EARNING"  # Hourly, Fixed-price, Milestone, Bonus
    PLATFORM_FEE = "PLATFORM_FEE"  # Connects, Subscription, Membership, Service Fee
    OTHER = "OTHER"  # Refunds, adjustments, everything else


_INVOICE_TYPE_LABELS: dict[InvoiceType, str] = {
    InvoiceType.GT: "Platform Client Earnings",
    InvoiceType.GRC: "Platform Fees (Reverse Charge)",
    InvoiceType.DT: "Direct Export Clients",
    InvoiceType.G: "General Direct Clients",
}

_INVOICE_TYPE_CATEGORIES: dict[InvoiceType, tuple[TransactionCategory, ...]] = {
    InvoiceType.GT: (TransactionCategory.CLIENT_EARNING,),
    InvoiceType.GRC: (TransactionCategory.PLATFORM_FEE,),
    InvoiceType.DT: (),
    InvoiceType.G: (),
}


@dataclass(frozen=True)
class TransactionRecord:
    """A classified row of the transaction export. Amount is in USD, never negative."""

    date: date
    transaction_id: str
    transaction_type: str
    summary: str
    counterparty: str
    amount: Decimal
    category: TransactionCategory
    freelancer: str = ""


@dataclass
class PeriodAggregate:
    """Transactions of one billing period, summed.

    Built up by the aggregator (amount accumulated, transactions appended)
    and consumed once by the engine.
    """

    counterparty: str
    month: str
    year: int
    invoice_date: date
    gross_amount: Decimal = Decimal("0")
    transactions: list[TransactionRecord] = field(default_factory=list)

    @property
    def period_key(self) -> str:
        return f"{self.invoice_date.year:04d}-{self.invoice_date.month:02d}"

    def add(self, record: TransactionRecord) -> None:
        self.gross_amount += record.amount
        self.transactions.append(record)


def _money(value: Decimal | None) -> str | None:
    return None if value is None else f"{value:.2f}"


@dataclass(frozen=True)
class Invoice:
    """A generated invoice, ready for the presentation/export layer."""

    invoice_number: str
    invoice_date: date
    invoice_date_display: str
    client: str
    location: str
    inr_amount: Decimal
    amount_in_words: str
    quarter: str
    invoice_type: InvoiceType
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    is_reverse_charge: bool
    currency: Currency
    description: str
    usd_amount: Decimal | None = None
    exchange_rate: Decimal | None = None
    client_gstin: str | None = None
    client_address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape used by exported documents."""
        return {
            "invoiceNumber": self.invoice_number,
            "invoiceDate": self.invoice_date_display,
            "invoiceDateIso": self.invoice_date.isoformat(),
            "client": self.client,
            "location": self.location,
            "usdAmount": _money(self.usd_amount),
            "exchangeRate": None if self.exchange_rate is None else str(self.exchange_rate),
            "inrAmount": _money(self.inr_amount),
            "amountInWords": self.amount_in_words,
            "quarter": self.quarter,
            "invoiceType": self.invoice_type.value,
            "taxRate": str(self.tax_rate),
            "taxAmount": _money(self.tax_amount),
            "totalAmount": _money(self.total_amount),
            "isReverseCharge": self.is_reverse_charge,
            "currency": self.currency,
            "description": self.description,
            "clientGSTIN": self.client_gstin,
            "clientAddress": self.client_address,
        }
