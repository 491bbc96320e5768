"""Tests for billing-period aggregation."""

from datetime import date
from decimal import Decimal

from gst_invoicer.aggregator import (
    PLATFORM_FEE_LABEL,
    AggregationMode,
    aggregate,
    last_day_of_month,
    mode_for,
)
from gst_invoicer.models import InvoiceType, TransactionCategory, TransactionRecord


def _record(
    on: date,
    amount: str,
    counterparty: str = "Acme",
    summary: str = "Hourly work",
    category: TransactionCategory = TransactionCategory.CLIENT_EARNING,
) -> TransactionRecord:
    return TransactionRecord(
        date=on,
        transaction_id=f"T-{on.isoformat()}-{amount}",
        transaction_type="Hourly",
        summary=summary,
        counterparty=counterparty,
        amount=Decimal(amount),
        category=category,
    )


def test_last_day_of_month():
    assert last_day_of_month(2024, 2) == date(2024, 2, 29)
    assert last_day_of_month(2023, 2) == date(2023, 2, 28)
    assert last_day_of_month(2024, 6) == date(2024, 6, 30)
    assert last_day_of_month(2024, 12) == date(2024, 12, 31)


def test_mode_for_invoice_type():
    assert mode_for(InvoiceType.GT) is AggregationMode.BY_CLIENT_MONTH
    assert mode_for(InvoiceType.GRC) is AggregationMode.BY_MONTH


def test_same_client_same_month_is_one_period():
    records = [
        _record(date(2024, 6, 3), "100.10"),
        _record(date(2024, 6, 28), "200.20"),
    ]

    periods = aggregate(records, AggregationMode.BY_CLIENT_MONTH)

    assert len(periods) == 1
    period = periods[0]
    assert period.counterparty == "Acme"
    assert period.gross_amount == Decimal("300.30")
    assert period.transactions == records
    assert period.month == "June"
    assert period.year == 2024
    assert period.invoice_date == date(2024, 6, 30)
    assert period.period_key == "2024-06"


def test_gross_amount_is_exact_sum():
    amounts = ["0.10", "0.20", "0.30", "1000.01", "33.33"]
    records = [_record(date(2024, 3, day + 1), a) for day, a in enumerate(amounts)]

    (period,) = aggregate(records, AggregationMode.BY_CLIENT_MONTH)

    assert period.gross_amount == sum((Decimal(a) for a in amounts), Decimal("0"))
    assert period.gross_amount == sum((t.amount for t in period.transactions), Decimal("0"))


def test_split_by_client_and_sorted_by_invoice_date():
    records = [
        _record(date(2024, 7, 2), "10", counterparty="Globex"),
        _record(date(2024, 6, 9), "20", counterparty="Acme"),
        _record(date(2024, 6, 1), "30", counterparty="Globex"),
        _record(date(2024, 6, 5), "40", counterparty="Acme"),
    ]

    periods = aggregate(records, AggregationMode.BY_CLIENT_MONTH)

    # June periods keep first-seen order: Acme was seen before Globex
    assert [(p.counterparty, p.invoice_date) for p in periods] == [
        ("Acme", date(2024, 6, 30)),
        ("Globex", date(2024, 6, 30)),
        ("Globex", date(2024, 7, 31)),
    ]
    assert [p.gross_amount for p in periods] == [Decimal("60"), Decimal("30"), Decimal("10")]


def test_same_month_different_years_stay_apart():
    records = [
        _record(date(2023, 1, 10), "5"),
        _record(date(2024, 1, 10), "7"),
    ]

    periods = aggregate(records, AggregationMode.BY_CLIENT_MONTH)

    assert [p.invoice_date for p in periods] == [date(2023, 1, 31), date(2024, 1, 31)]


def test_by_month_ignores_counterparty():
    records = [
        _record(date(2024, 6, 2), "15.00", counterparty="Acme", summary="Connects"),
        _record(date(2024, 6, 5), "14.99", counterparty="Globex", summary="Membership"),
        _record(date(2024, 7, 5), "14.99", counterparty="Acme", summary="Membership"),
    ]

    periods = aggregate(records, AggregationMode.BY_MONTH)

    assert len(periods) == 2
    assert all(p.counterparty == PLATFORM_FEE_LABEL for p in periods)
    assert periods[0].gross_amount == Decimal("29.99")
    assert len(periods[0].transactions) == 2


def test_empty_input():
    assert aggregate([], AggregationMode.BY_CLIENT_MONTH) == []
