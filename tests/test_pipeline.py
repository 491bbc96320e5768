"""End-to-end tests for the invoice pipeline."""

import csv
from datetime import date
from decimal import Decimal

import pytest
from conftest import FakeRateClient
from factories import make_row

from gst_invoicer.aggregator import PLATFORM_FEE_LABEL
from gst_invoicer.errors import EmptyResultError, ParseError, ValidationError
from gst_invoicer.models import InvoiceType
from gst_invoicer.pipeline import InvoicePipeline, PipelineContext


@pytest.fixture
def context(profile, rate_client):
    return PipelineContext(profile=profile, rate_client=rate_client)


@pytest.fixture
def pipeline(context):
    return InvoicePipeline(context)


def _write_csv(path, rows):
    with path.open("w", encoding="utf-8", newline="") as stream:
        writer = csv.DictWriter(stream, fieldnames=list(rows[0]))
        writer.writeheader()
        writer.writerows(rows)


class TestRun:
    @pytest.mark.asyncio
    async def test_single_row_at_manual_rate(self, context, pipeline, rate_client):
        context.profile = context.profile.model_copy(
            update={"manual_exchange_rate": Decimal("85")}
        )
        rows = [make_row("Hourly", "1000", "2024-06-15", account="Acme")]

        result = await pipeline.run(rows, InvoiceType.GT)

        (invoice,) = result.invoices
        assert invoice.invoice_number == "GT-01"
        assert invoice.client == "Acme"
        assert invoice.usd_amount == Decimal("1000")
        assert invoice.inr_amount == Decimal("85000.00")
        assert invoice.quarter == "Q1-2024"
        assert invoice.invoice_date == date(2024, 6, 30)
        assert invoice.amount_in_words == "Eighty Five Thousand"
        assert rate_client.calls == []

    @pytest.mark.asyncio
    async def test_earnings_batch(self, context, pipeline, earning_rows):
        result = await pipeline.run(earning_rows, InvoiceType.GT)

        assert [(i.invoice_number, i.client) for i in result.invoices] == [
            ("GT-01", "Globex Agency"),
            ("GT-02", "Acme"),
        ]
        globex, acme = result.invoices
        assert globex.exchange_rate == Decimal("83.47")
        assert globex.inr_amount == Decimal("33388.00")
        assert acme.usd_amount == Decimal("1250.50")
        assert acme.inr_amount == Decimal("104279.20")

        assert result.summary.count == 2
        assert result.summary.total_usd == Decimal("1650.50")
        assert result.profile.next_number(InvoiceType.GT) == 3
        assert context.profile is result.profile

    @pytest.mark.asyncio
    async def test_fee_batch(self, pipeline, fee_rows):
        result = await pipeline.run(fee_rows, InvoiceType.GRC)

        assert [i.invoice_number for i in result.invoices] == ["GRC-01", "GRC-02"]
        june, july = result.invoices
        assert june.client == PLATFORM_FEE_LABEL
        assert june.usd_amount == Decimal("29.99")
        assert june.description == "Connects Fee, Freelancer Plus Membership"
        assert june.is_reverse_charge is True
        assert june.total_amount == june.inr_amount + june.tax_amount
        # July has no historical rate, so the latest rate is used
        assert july.exchange_rate == Decimal("83.50")

    @pytest.mark.asyncio
    async def test_rate_service_down_still_completes(self, profile):
        context = PipelineContext(profile=profile, rate_client=FakeRateClient(latest=None))
        pipeline = InvoicePipeline(context)

        result = await pipeline.run([make_row("Hourly", "10.00")], InvoiceType.GT)

        assert result.invoices[0].exchange_rate == Decimal("84.00")
        assert result.invoices[0].inr_amount == Decimal("840.00")

    @pytest.mark.asyncio
    async def test_batches_share_counters_and_cache(self, context, pipeline, rate_client):
        rows = [make_row("Hourly", "10.00", "2024-06-03")]

        first = await pipeline.run(rows, InvoiceType.GT)
        calls_after_first = list(rate_client.calls)
        second = await pipeline.run(rows, InvoiceType.GT)

        assert first.invoices[0].invoice_number == "GT-01"
        assert second.invoices[0].invoice_number == "GT-02"
        assert rate_client.calls == calls_after_first
        assert date(2024, 6, 30) in context.rate_cache

    @pytest.mark.asyncio
    async def test_parse_failure_leaves_profile_untouched(self, context, pipeline, profile):
        rows = [make_row("Hourly", "10.00"), make_row("Hourly", "ten")]

        with pytest.raises(ParseError) as exc_info:
            await pipeline.run(rows, InvoiceType.GT)

        assert exc_info.value.row_number == 3
        assert context.profile is profile

    @pytest.mark.asyncio
    async def test_nothing_to_invoice(self, context, pipeline, fee_rows, profile):
        rows = [r for r in fee_rows if r["Transaction Type"] != "Hourly"]

        with pytest.raises(EmptyResultError):
            await pipeline.run(rows, InvoiceType.GT)

        assert context.profile is profile

    @pytest.mark.asyncio
    @pytest.mark.parametrize("invoice_type", [InvoiceType.DT, InvoiceType.G])
    async def test_manual_types_rejected(self, pipeline, earning_rows, rate_client, invoice_type):
        with pytest.raises(ValidationError):
            await pipeline.run(earning_rows, invoice_type)

        assert rate_client.calls == []


class TestRunFile:
    @pytest.mark.asyncio
    async def test_reads_export(self, pipeline, tmp_path, earning_rows):
        path = tmp_path / "statement.csv"
        _write_csv(path, earning_rows)

        result = await pipeline.run_file(path, InvoiceType.GT)

        assert len(result.invoices) == 2

    @pytest.mark.asyncio
    async def test_parse_error_names_file_line(self, context, pipeline, tmp_path, profile):
        path = tmp_path / "statement.csv"
        good = make_row("Hourly", "10.00")
        blank = {column: "" for column in good}
        bad = make_row("Hourly", "10.00", date_="not-a-date")
        # Lines: 1 header, 2 good, 3 blank, 4 bad
        _write_csv(path, [good, blank, bad])

        with pytest.raises(ParseError) as exc_info:
            await pipeline.run_file(path, InvoiceType.GT)

        assert exc_info.value.row_number == 4
        assert "Row 4" in str(exc_info.value)
        assert context.profile is profile

    @pytest.mark.asyncio
    async def test_missing_file(self, pipeline, tmp_path):
        with pytest.raises(ParseError):
            await pipeline.run_file(tmp_path / "missing.csv", InvoiceType.GT)


@pytest.mark.asyncio
async def test_context_manager_closes_client(context, rate_client):
    async with InvoicePipeline(context):
        pass

    assert rate_client.closed is True


def test_context_builds_rate_client(profile):
    context = PipelineContext(profile=profile)

    assert context.rate_client is not None
    assert context.rate_client.base_url == context.settings.rate_api_url.rstrip("/")
