"""Pytest configuration and fixtures."""

import os
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("GST_EXPORT_DELAY", "0")
os.environ.setdefault("GST_FALLBACK_RATE", "84.00")
os.environ.setdefault("GST_DEFAULT_CLIENT_LOCATION", "United States")

from factories import make_row  # noqa: E402

from gst_invoicer.errors import RateLookupError  # noqa: E402
from gst_invoicer.profile import BusinessProfile  # noqa: E402


@dataclass
class FakeRateClient:
    """Stand-in for ExchangeRateClient with scripted answers."""

    historical: dict[date, Decimal] = field(default_factory=dict)
    latest: Decimal | None = Decimal("83.50")
    calls: list[date | None] = field(default_factory=list)
    closed: bool = False

    async def fetch_rate(self, on_date: date) -> Decimal:
        self.calls.append(on_date)
        if on_date not in self.historical:
            raise RateLookupError("Rate service returned 404", status_code=404, on_date=on_date)
        return self.historical[on_date]

    async def fetch_latest_rate(self) -> Decimal:
        self.calls.append(None)
        if self.latest is None:
            raise RateLookupError("Rate request failed: connection refused")
        return self.latest

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def rate_client():
    """Rate client that knows a couple of month-end rates."""
    return FakeRateClient(
        historical={
            date(2024, 5, 31): Decimal("83.47"),
            date(2024, 6, 30): Decimal("83.39"),
        }
    )


@pytest.fixture
def profile():
    """A complete, valid business profile."""
    return BusinessProfile(
        name="Example Consulting",
        gstin="24ABCDE1234F1Z5",
        lut="AD240424012345X",
        lut_period={"from": "2024-04-01", "to": "2025-03-31"},
        pan_number="ABCDE1234F",
        address_line1="12 Market Road",
        city="Ahmedabad",
        pincode="380001",
        state="Gujarat",
        state_code="24",
        email="billing@example.com",
        starting_invoice_numbers={"GT": 1, "GRC": 1, "DT": 1, "G": 1},
    )


@pytest.fixture
def earning_rows():
    """Two clients across two months plus rows that must be ignored."""
    return [
        make_row("Hourly", "1000.00", "2024-06-15", account="Acme"),
        make_row("Fixed-price", "250.50", "2024-06-20", account="Acme", transaction_id="T-2"),
        make_row("Milestone", "400.00", "2024-05-03", agency="Globex Agency", account="Someone"),
        make_row("Withdrawal", "-1650.50", "2024-06-25", summary="Withdrawal to bank"),
        make_row("Service Fee", "-100.00", "2024-06-15", summary="Service Fee"),
        make_row("Hourly", "-20.00", "2024-06-16", summary="Refund", account="Acme"),
    ]


@pytest.fixture
def fee_rows():
    """Platform-fee rows as they appear in the export (negative amounts)."""
    return [
        make_row("Connects", "-15.00", "2024-06-02", summary="Connects purchase"),
        make_row("Membership", "-14.99", "2024-06-05", summary="Freelancer Plus membership fee"),
        make_row("Service Fee", "-3.00", "2024-06-07", summary="Service Fee - Ref ID 123"),
        make_row("Subscription", "-14.99", "2024-07-05", summary="Monthly subscription"),
        make_row("Hourly", "500.00", "2024-06-10"),
    ]
