"""Tests for invoice document export."""

import json
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from gst_invoicer.engine import TITLE_EXPORT, TITLE_REVERSE_CHARGE, InvoiceEngine
from gst_invoicer.export import (
    export_invoices,
    invoice_document,
    invoice_filename,
    sanitize_client_name,
)
from gst_invoicer.models import InvoiceType, PeriodAggregate


def _invoices(profile, invoice_type=InvoiceType.GT, clients=("Acme Corp.",)):
    periods = [
        PeriodAggregate(
            counterparty=client,
            month="June",
            year=2024,
            invoice_date=date(2024, 6, 30),
            gross_amount=Decimal("100.00"),
        )
        for client in clients
    ]
    engine = InvoiceEngine(fallback_rate=Decimal("84.00"))
    rates = {date(2024, 6, 30): Decimal("83.39")}
    return engine.generate(periods, profile, invoice_type, rates).invoices


def test_sanitize_client_name():
    assert sanitize_client_name("Acme Corp.") == "AcmeCorp"
    assert sanitize_client_name("O'Neil & Sons, LLC") == "ONeilSonsLLC"


def test_invoice_filename(profile):
    (invoice,) = _invoices(profile)
    assert invoice_filename(invoice) == "GT-01_AcmeCorp_30-Jun-24.json"


class TestInvoiceDocument:
    def test_export_document(self, profile):
        (invoice,) = _invoices(profile)

        document = invoice_document(invoice, profile)

        assert document["title"] == TITLE_EXPORT
        assert document["invoice"]["invoiceNumber"] == "GT-01"
        assert document["invoice"]["inrAmount"] == "8339.00"
        assert document["supplier"]["gstin"] == profile.gstin
        assert document["supplier"]["lut"] == profile.lut
        assert document["supplier"]["lutPeriod"] == {"from": "2024-04-01", "to": "2025-03-31"}
        assert document["supplier"]["address"] == [
            "12 Market Road",
            "Ahmedabad - 380001",
            "Gujarat, India",
        ]
        assert document["lineItem"]["hsnSac"] == "998313"
        assert document["lineItem"]["usdAmount"] == "100.00"
        assert document["tax"] == {
            "type": "IGST",
            "rate": "0",
            "amount": "0.00",
            "reverseCharge": False,
        }
        assert document["total"] == "8339.00"
        assert document["amountInWords"] == "INR Eight Thousand Three Hundred and Thirty Nine Only"
        assert document["quarter"] == "Q1-2024"

    def test_reverse_charge_document_has_no_lut(self, profile):
        (invoice,) = _invoices(profile, InvoiceType.GRC, clients=("Upwork Platform Fees",))

        document = invoice_document(invoice, profile)

        assert document["title"] == TITLE_REVERSE_CHARGE
        assert "lut" not in document["supplier"]
        assert document["tax"]["reverseCharge"] is True
        assert document["tax"]["rate"] == "18"

    def test_document_is_json_serialisable(self, profile):
        (invoice,) = _invoices(profile)
        json.dumps(invoice_document(invoice, profile))


class TestExportInvoices:
    @pytest.mark.asyncio
    async def test_writes_one_file_per_invoice(self, profile, tmp_path):
        invoices = _invoices(profile, clients=("Acme Corp.", "Globex"))

        paths = await export_invoices(invoices, profile, tmp_path / "out")

        assert [p.name for p in paths] == [
            "GT-01_AcmeCorp_30-Jun-24.json",
            "GT-02_Globex_30-Jun-24.json",
        ]
        data = json.loads(paths[1].read_text(encoding="utf-8"))
        assert data["invoice"]["client"] == "Globex"

    @pytest.mark.asyncio
    async def test_delay_between_files(self, profile, tmp_path):
        invoices = _invoices(profile, clients=("A", "B", "C"))

        with patch("gst_invoicer.export.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await export_invoices(invoices, profile, tmp_path, delay_seconds=0.5)

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_no_delay_when_zero(self, profile, tmp_path):
        invoices = _invoices(profile, clients=("A", "B"))

        with patch("gst_invoicer.export.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await export_invoices(invoices, profile, tmp_path, delay_seconds=0)

        mock_sleep.assert_not_awaited()
