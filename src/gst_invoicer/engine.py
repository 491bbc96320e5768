"""Invoice numbering and GST tax computation.

Every invoice series keeps its own counter in the business profile.
Numbers are handed out strictly in the order aggregates arrive (date
ascending from the aggregator), and the returned profile carries the
counter advanced by the number of invoices produced.

Tax treatment by series:

    GT   0%  export under bond/LUT
    GRC  18% reverse charge, self-invoice for imported platform services
    DT   0%  export under bond/LUT
    G    0% for export, 18% when the client is in India
"""

from __future__ import annotations

import calendar
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import assert_never

import structlog

from gst_invoicer.config import get_settings
from gst_invoicer.config.rules_loader import ClassificationRules, load_classification_rules
from gst_invoicer.errors import EmptyResultError, ValidationError
from gst_invoicer.models import Currency, Invoice, InvoiceType, PeriodAggregate
from gst_invoicer.profile import BusinessProfile
from gst_invoicer.words import amount_to_words

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
IGST_RATE = Decimal("18")
ZERO_RATE = Decimal("0")

TITLE_REVERSE_CHARGE = "TAX INVOICE (Reverse Charge Mechanism)"
TITLE_EXPORT = "TAX INVOICE (SUPPLY MEANT FOR EXPORT UNDER BOND OR LUT WITHOUT PAYMENT OF IGST)"
TITLE_DOMESTIC = "TAX INVOICE"

DEFAULT_FEE_DESCRIPTION = "Platform Services"


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxTreatment:
    """Tax rate (percent) and reverse-charge status for one invoice."""

    rate: Decimal
    reverse_charge: bool
    tax_label: str = "IGST"

    @property
    def title(self) -> str:
        if self.reverse_charge:
            return TITLE_REVERSE_CHARGE
        if self.rate == 0:
            return TITLE_EXPORT
        return TITLE_DOMESTIC


def is_domestic(location: str) -> bool:
    """Placeholder jurisdiction policy until clients carry a real country field."""
    return "india" in location.casefold()


def tax_treatment(invoice_type: InvoiceType, location: str) -> TaxTreatment:
    if invoice_type is InvoiceType.GT:
        return TaxTreatment(rate=ZERO_RATE, reverse_charge=False)
    elif invoice_type is InvoiceType.GRC:
        return TaxTreatment(rate=IGST_RATE, reverse_charge=True)
    elif invoice_type is InvoiceType.DT:
        return TaxTreatment(rate=ZERO_RATE, reverse_charge=False)
    elif invoice_type is InvoiceType.G:
        rate = IGST_RATE if is_domestic(location) else ZERO_RATE
        return TaxTreatment(rate=rate, reverse_charge=False)
    else:
        assert_never(invoice_type)


def format_invoice_number(invoice_type: InvoiceType, sequence: int) -> str:
    """``GT-01``, ``GT-02`` ... ``GT-100``; two digits is a minimum width."""
    return f"{invoice_type.prefix}-{sequence:02d}"


def gst_quarter(on_date: date) -> str:
    """GST return quarter; the Indian fiscal year starts in April."""
    month = on_date.month
    if 4 <= month <= 6:
        return f"Q1-{on_date.year}"
    if 7 <= month <= 9:
        return f"Q2-{on_date.year}"
    if 10 <= month <= 12:
        return f"Q3-{on_date.year}"
    return f"Q4-{on_date.year - 1}"


def format_invoice_date(on_date: date) -> str:
    """``30-Jun-24``"""
    return f"{on_date.day:02d}-{calendar.month_abbr[on_date.month]}-{on_date.year % 100:02d}"


def describe_platform_fees(
    summaries: Sequence[str], rules: ClassificationRules | None = None
) -> str:
    """Collapse fee transaction summaries into a short de-duplicated description."""
    rules = rules or load_classification_rules()
    labels: list[str] = []

    for summary in summaries:
        text = summary.strip()
        if not text:
            continue
        folded = text.casefold()
        label = next(
            (lbl for marker, lbl in rules.fee_description_patterns if marker.casefold() in folded),
            text,
        )
        if label not in labels:
            labels.append(label)

    return ", ".join(labels) or DEFAULT_FEE_DESCRIPTION


def describe_service(
    aggregate: PeriodAggregate,
    invoice_type: InvoiceType,
    profile: BusinessProfile,
) -> str:
    if invoice_type is InvoiceType.GRC:
        return describe_platform_fees([t.summary for t in aggregate.transactions])
    elif (
        invoice_type is InvoiceType.GT
        or invoice_type is InvoiceType.DT
        or invoice_type is InvoiceType.G
    ):
        return profile.service
    else:
        assert_never(invoice_type)


@dataclass(frozen=True)
class ManualInvoiceRequest:
    """Invoice details entered by hand for the direct-client series.

    Give ``usd_amount`` and ``exchange_rate`` for a USD invoice, or
    ``inr_amount`` alone for an INR invoice.
    """

    invoice_type: InvoiceType
    client: str
    location: str
    invoice_date: date
    description: str | None = None
    usd_amount: Decimal | None = None
    exchange_rate: Decimal | None = None
    inr_amount: Decimal | None = None
    client_gstin: str | None = None
    client_address: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    invoices: list[Invoice]
    profile: BusinessProfile


@dataclass(frozen=True)
class BatchSummary:
    """Totals shown after a batch is generated."""

    count: int
    total_usd: Decimal
    total_inr: Decimal
    total_tax: Decimal
    grand_total: Decimal

    @classmethod
    def from_invoices(cls, invoices: Sequence[Invoice]) -> BatchSummary:
        return cls(
            count=len(invoices),
            total_usd=sum((i.usd_amount or Decimal("0") for i in invoices), Decimal("0")),
            total_inr=sum((i.inr_amount for i in invoices), Decimal("0")),
            total_tax=sum((i.tax_amount for i in invoices), Decimal("0")),
            grand_total=sum((i.total_amount for i in invoices), Decimal("0")),
        )


class InvoiceEngine:
    """Turns billing periods into numbered, taxed invoices."""

    def __init__(self, fallback_rate: Decimal | None = None):
        self.fallback_rate = (
            fallback_rate if fallback_rate is not None else get_settings().fallback_exchange_rate
        )
        self._logger = logger.bind(component="invoice_engine")

    def _build(
        self,
        *,
        invoice_type: InvoiceType,
        sequence: int,
        invoice_date: date,
        client: str,
        location: str,
        description: str,
        inr_amount: Decimal,
        currency: Currency,
        usd_amount: Decimal | None = None,
        exchange_rate: Decimal | None = None,
        client_gstin: str | None = None,
        client_address: str | None = None,
    ) -> Invoice:
        treatment = tax_treatment(invoice_type, location)
        tax_amount = round_money(inr_amount * treatment.rate / 100)
        total_amount = inr_amount + tax_amount if treatment.reverse_charge else inr_amount

        return Invoice(
            invoice_number=format_invoice_number(invoice_type, sequence),
            invoice_date=invoice_date,
            invoice_date_display=format_invoice_date(invoice_date),
            client=client,
            location=location,
            usd_amount=usd_amount,
            exchange_rate=exchange_rate,
            inr_amount=inr_amount,
            amount_in_words=amount_to_words(total_amount),
            quarter=gst_quarter(invoice_date),
            invoice_type=invoice_type,
            tax_rate=treatment.rate,
            tax_amount=tax_amount,
            total_amount=total_amount,
            is_reverse_charge=treatment.reverse_charge,
            currency=currency,
            description=description,
            client_gstin=client_gstin,
            client_address=client_address,
        )

    def generate(
        self,
        aggregates: Sequence[PeriodAggregate],
        profile: BusinessProfile,
        invoice_type: InvoiceType,
        rates: Mapping[date, Decimal],
    ) -> GenerationResult:
        """Number and tax one invoice per aggregate.

        Args:
            aggregates: Billing periods in the order they should be numbered.
            profile: Source of the next sequence number; not modified.
            invoice_type: Series to issue; must be an automated series.
            rates: Exchange rate per invoice date.

        Returns:
            The invoices and a profile copy with the counter advanced.
        """
        if invoice_type.requires_manual_entry:
            raise ValidationError(
                f"{invoice_type.value} invoices require manual entry"
            )
        if not aggregates:
            raise EmptyResultError("No billing periods to invoice")

        start = profile.next_number(invoice_type)
        location = profile.client_location()
        invoices: list[Invoice] = []

        for offset, period in enumerate(aggregates):
            rate = rates.get(period.invoice_date)
            if rate is None:
                self._logger.warning(
                    "rate_missing_for_date",
                    date=period.invoice_date.isoformat(),
                    fallback=str(self.fallback_rate),
                )
                rate = self.fallback_rate

            invoices.append(
                self._build(
                    invoice_type=invoice_type,
                    sequence=start + offset,
                    invoice_date=period.invoice_date,
                    client=period.counterparty,
                    location=location,
                    description=describe_service(period, invoice_type, profile),
                    usd_amount=period.gross_amount,
                    exchange_rate=rate,
                    inr_amount=round_money(period.gross_amount * rate),
                    currency="USD",
                )
            )

        updated = profile.advance(invoice_type, len(invoices))
        self._logger.info(
            "invoices_generated",
            invoice_type=invoice_type.value,
            count=len(invoices),
            first=invoices[0].invoice_number,
            last=invoices[-1].invoice_number,
            next_number=updated.next_number(invoice_type),
        )
        return GenerationResult(invoices=invoices, profile=updated)

    def create_manual_invoice(
        self,
        request: ManualInvoiceRequest,
        profile: BusinessProfile,
    ) -> GenerationResult:
        """Issue one invoice for a direct client entered by hand."""
        if not request.invoice_type.requires_manual_entry:
            raise ValidationError(
                f"{request.invoice_type.value} invoices are generated from the transaction export"
            )
        if not request.client.strip():
            raise ValidationError("Client name is required", {"client": "Client name is required"})

        currency: Currency
        if request.usd_amount is not None:
            if request.usd_amount <= 0:
                raise ValidationError("USD amount must be positive", {"usd_amount": "must be positive"})
            if request.exchange_rate is None or request.exchange_rate <= 0:
                raise ValidationError(
                    "A positive exchange rate is required for USD invoices",
                    {"exchange_rate": "must be positive"},
                )
            inr_amount = round_money(request.usd_amount * request.exchange_rate)
            currency = "USD"
        elif request.inr_amount is not None and request.inr_amount > 0:
            inr_amount = round_money(request.inr_amount)
            currency = "INR"
        else:
            raise ValidationError(
                "Either a USD amount or a positive INR amount is required",
                {"amount": "missing"},
            )

        invoice = self._build(
            invoice_type=request.invoice_type,
            sequence=profile.next_number(request.invoice_type),
            invoice_date=request.invoice_date,
            client=request.client.strip(),
            location=request.location,
            description=request.description or profile.service,
            inr_amount=inr_amount,
            currency=currency,
            usd_amount=request.usd_amount if currency == "USD" else None,
            exchange_rate=request.exchange_rate if currency == "USD" else None,
            client_gstin=request.client_gstin,
            client_address=request.client_address,
        )
        self._logger.info(
            "manual_invoice_created",
            invoice_number=invoice.invoice_number,
            currency=currency,
        )
        return GenerationResult(
            invoices=[invoice], profile=profile.advance(request.invoice_type, 1)
        )
