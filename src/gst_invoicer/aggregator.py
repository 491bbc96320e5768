"""Group classified transactions into monthly billing periods."""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date
from enum import Enum

import structlog

from gst_invoicer.models import InvoiceType, PeriodAggregate, TransactionRecord

logger = structlog.get_logger(__name__)

PLATFORM_FEE_LABEL = "Upwork Platform Fees"


class AggregationMode(str, Enum):
    """How transactions are keyed into billing periods."""

    BY_CLIENT_MONTH = "by_client_month"
    BY_MONTH = "by_month"


def mode_for(invoice_type: InvoiceType) -> AggregationMode:
    """Platform-fee invoices are billed per month, everything else per client and month."""
    if invoice_type is InvoiceType.GRC:
        return AggregationMode.BY_MONTH
    return AggregationMode.BY_CLIENT_MONTH


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def aggregate(
    records: Iterable[TransactionRecord],
    mode: AggregationMode,
) -> list[PeriodAggregate]:
    """Sum transactions per billing period.

    The invoice date of every period is the last day of its month, which
    is also the date its exchange rate is looked up for.

    Returns:
        Aggregates sorted by invoice date; periods ending on the same day
        keep the order their first transaction was seen in.
    """
    grouped: dict[tuple[str, int, int], PeriodAggregate] = {}

    for record in records:
        if mode is AggregationMode.BY_MONTH:
            counterparty = PLATFORM_FEE_LABEL
        else:
            counterparty = record.counterparty
        key = (counterparty, record.date.year, record.date.month)

        period = grouped.get(key)
        if period is None:
            period = PeriodAggregate(
                counterparty=counterparty,
                month=calendar.month_name[record.date.month],
                year=record.date.year,
                invoice_date=last_day_of_month(record.date.year, record.date.month),
            )
            grouped[key] = period
        period.add(record)

    # sorted() is stable, so insertion order breaks ties
    periods = sorted(grouped.values(), key=lambda p: p.invoice_date)
    logger.debug("periods_aggregated", mode=mode.value, periods=len(periods))
    return periods
