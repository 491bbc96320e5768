"""Transaction export to invoices: classify, aggregate, resolve rates, generate.

A batch is all-or-nothing. Classification and aggregation errors abort
it; rate service failures never do, because the resolver falls back to
the latest rate and then to a constant.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from gst_invoicer.aggregator import aggregate, mode_for
from gst_invoicer.classifier import classify_numbered_rows, ensure_automated
from gst_invoicer.config import FlatSettings, get_settings
from gst_invoicer.csv_source import read_numbered_rows
from gst_invoicer.engine import BatchSummary, InvoiceEngine
from gst_invoicer.errors import EmptyResultError
from gst_invoicer.models import Invoice, InvoiceType
from gst_invoicer.profile import BusinessProfile
from gst_invoicer.rates import ExchangeRateClient, RateCache, RateResolver

logger = structlog.get_logger(__name__)


@dataclass
class PipelineContext:
    """State shared by the batches of one process: profile snapshot and rate cache."""

    profile: BusinessProfile
    settings: FlatSettings = field(default_factory=get_settings)
    rate_cache: RateCache = field(default_factory=RateCache)
    rate_client: ExchangeRateClient | None = None

    def __post_init__(self) -> None:
        if self.rate_client is None:
            self.rate_client = ExchangeRateClient(
                base_url=self.settings.rate_api_url,
                timeout=self.settings.rate_timeout,
                base_currency=self.settings.base_currency,
                quote_currency=self.settings.quote_currency,
            )


@dataclass(frozen=True)
class BatchResult:
    invoices: list[Invoice]
    profile: BusinessProfile
    summary: BatchSummary


class InvoicePipeline:
    """Runs invoice batches against one pipeline context."""

    def __init__(self, context: PipelineContext):
        if context.rate_client is None:
            raise ValueError("pipeline context has no rate client")
        self.context = context
        self.resolver = RateResolver(
            context.rate_client,
            cache=context.rate_cache,
            fallback_rate=context.settings.fallback_exchange_rate,
        )
        self.engine = InvoiceEngine(fallback_rate=context.settings.fallback_exchange_rate)

    async def close(self) -> None:
        if self.context.rate_client is not None:
            await self.context.rate_client.close()

    async def __aenter__(self) -> "InvoicePipeline":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def run(
        self,
        rows: Iterable[Mapping[str, str | None]],
        invoice_type: InvoiceType,
    ) -> BatchResult:
        """Generate one batch of invoices from raw export rows.

        The context's profile is replaced by the advanced copy only when the
        whole batch succeeded. Persisting it is up to the caller.
        """
        # Row 1 is the header
        return await self._run(enumerate(rows, start=2), invoice_type)

    async def run_file(self, path: str | Path, invoice_type: InvoiceType) -> BatchResult:
        """Read a transaction export from disk and run a batch on it.

        Parse errors name the row by its line in the file.
        """
        ensure_automated(invoice_type)
        return await self._run(read_numbered_rows(path), invoice_type)

    async def _run(
        self,
        rows: Iterable[tuple[int, Mapping[str, str | None]]],
        invoice_type: InvoiceType,
    ) -> BatchResult:
        ensure_automated(invoice_type)
        profile = self.context.profile
        log = logger.bind(invoice_type=invoice_type.value)

        records = classify_numbered_rows(rows, invoice_type)
        periods = aggregate(records, mode_for(invoice_type))
        if not periods:
            raise EmptyResultError("No billing periods could be formed from the export")

        rates = await self.resolver.resolve(
            (period.invoice_date for period in periods),
            override=profile.manual_exchange_rate,
        )
        result = self.engine.generate(periods, profile, invoice_type, rates)

        summary = BatchSummary.from_invoices(result.invoices)
        self.context.profile = result.profile
        log.info(
            "batch_completed",
            transactions=len(records),
            invoices=summary.count,
            total_usd=str(summary.total_usd),
            total_inr=str(summary.total_inr),
        )
        return BatchResult(invoices=result.invoices, profile=result.profile, summary=summary)
