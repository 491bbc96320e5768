"""USD to INR exchange rates for invoice dates.

An operator-supplied override rate wins outright. Otherwise each distinct
invoice date is looked up concurrently against the historical rate
service; a failed lookup falls back to the service's latest rate and then
to a fixed constant, so resolution itself never fails.
"""

import asyncio
from collections.abc import Iterable
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog

from gst_invoicer.config import get_settings
from gst_invoicer.errors import RateLookupError

logger = structlog.get_logger(__name__)


class ExchangeRateClient:
    """Async client for a Frankfurter-style historical rate service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        base_currency: str | None = None,
        quote_currency: str | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.rate_api_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.rate_timeout
        self.base_currency = base_currency or settings.base_currency
        self.quote_currency = quote_currency or settings.quote_currency
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ExchangeRateClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request_rate(self, path: str, on_date: date | None) -> Decimal:
        client = await self._get_client()
        try:
            response = await client.get(
                path,
                params={"from": self.base_currency, "to": self.quote_currency},
            )
        except httpx.HTTPError as exc:
            raise RateLookupError(
                f"Rate request failed: {exc}", on_date=on_date
            ) from exc

        if response.status_code != 200:
            raise RateLookupError(
                f"Rate service returned {response.status_code}",
                status_code=response.status_code,
                on_date=on_date,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise RateLookupError(
                "Rate service returned invalid JSON",
                status_code=response.status_code,
                on_date=on_date,
            ) from exc

        return self._extract_rate(data, on_date)

    def _extract_rate(self, data: Any, on_date: date | None) -> Decimal:
        rates = data.get("rates") if isinstance(data, dict) else None
        value = rates.get(self.quote_currency) if isinstance(rates, dict) else None
        if value is None or isinstance(value, bool):
            raise RateLookupError(
                f"{self.quote_currency} rate not found in response", on_date=on_date
            )

        try:
            # str() keeps the decimal digits the service sent
            rate = Decimal(str(value))
        except InvalidOperation as exc:
            raise RateLookupError(f"Invalid rate value {value!r}", on_date=on_date) from exc

        if not rate.is_finite() or rate <= 0:
            raise RateLookupError(f"Invalid rate value {value!r}", on_date=on_date)
        return rate

    async def fetch_rate(self, on_date: date) -> Decimal:
        """Fetch the historical rate for a calendar date."""
        return await self._request_rate(f"/{on_date.isoformat()}", on_date)

    async def fetch_latest_rate(self) -> Decimal:
        """Fetch the service's current rate."""
        return await self._request_rate("/latest", None)


class RateCache:
    """Historical rates by ISO date. Entries never expire."""

    def __init__(self) -> None:
        self._rates: dict[str, Decimal] = {}

    def get(self, on_date: date) -> Decimal | None:
        return self._rates.get(on_date.isoformat())

    def put(self, on_date: date, rate: Decimal) -> None:
        self._rates[on_date.isoformat()] = rate

    def clear(self) -> None:
        self._rates.clear()

    def __contains__(self, on_date: object) -> bool:
        return isinstance(on_date, date) and on_date.isoformat() in self._rates

    def __len__(self) -> int:
        return len(self._rates)


class RateResolver:
    """Resolve one exchange rate per invoice date."""

    def __init__(
        self,
        client: ExchangeRateClient,
        cache: RateCache | None = None,
        fallback_rate: Decimal | None = None,
    ):
        self._client = client
        self.cache = cache if cache is not None else RateCache()
        self.fallback_rate = (
            fallback_rate if fallback_rate is not None else get_settings().fallback_exchange_rate
        )
        self._logger = logger.bind(component="rate_resolver")

    def clear_cache(self) -> None:
        self.cache.clear()
        self._logger.info("rate_cache_cleared")

    async def resolve(
        self,
        dates: Iterable[date],
        override: Decimal | None = None,
    ) -> dict[date, Decimal]:
        """Return a rate for every requested date.

        Args:
            dates: Invoice dates; duplicates are looked up once.
            override: Operator-supplied rate. When positive it is used for
                every date and the rate service is not contacted.
        """
        unique = sorted(set(dates))

        if override is not None and override > 0:
            self._logger.info("rate_override_used", rate=str(override), dates=len(unique))
            return {on_date: override for on_date in unique}

        tasks: dict[date, asyncio.Task[Decimal]] = {}
        async with asyncio.TaskGroup() as group:
            for on_date in unique:
                tasks[on_date] = group.create_task(self._resolve_one(on_date))

        rates = {on_date: task.result() for on_date, task in tasks.items()}
        self._logger.info("rates_resolved", dates=len(rates))
        return rates

    async def _resolve_one(self, on_date: date) -> Decimal:
        cached = self.cache.get(on_date)
        if cached is not None:
            self._logger.debug("rate_cache_hit", date=on_date.isoformat(), rate=str(cached))
            return cached

        try:
            rate = await self._client.fetch_rate(on_date)
        except RateLookupError as exc:
            self._logger.warning(
                "rate_fallback_latest",
                date=on_date.isoformat(),
                error=exc.message,
                status_code=exc.status_code,
            )
        except Exception as exc:
            self._logger.error(
                "rate_lookup_failed_unexpectedly",
                date=on_date.isoformat(),
                error=str(exc),
                exc_info=True,
            )
        else:
            self.cache.put(on_date, rate)
            self._logger.info("rate_fetched", date=on_date.isoformat(), rate=str(rate))
            return rate

        try:
            return await self._client.fetch_latest_rate()
        except RateLookupError as exc:
            self._logger.warning(
                "rate_fallback_constant",
                date=on_date.isoformat(),
                rate=str(self.fallback_rate),
                error=exc.message,
            )
        except Exception as exc:
            self._logger.error(
                "rate_fallback_constant",
                date=on_date.isoformat(),
                rate=str(self.fallback_rate),
                error=str(exc),
                exc_info=True,
            )
        return self.fallback_rate
