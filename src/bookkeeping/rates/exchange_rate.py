#!/usr/bin/env python3
"""
Exchange Rate Provider

Historical official USD/ARS rates from the ArgentinaDatos API, used to compare
USD invoices against ARS payments.

Network access only happens in the async fetch/prefetch path. Matchers read
rates through get_sync(), which never blocks: callers prefetch the dates a
batch needs, then match. A date that was not prefetched is a cache miss and
the comparison reports no match.
"""

import asyncio
import logging
import math
import time
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx

from ..core.config import DEFAULT_EXCHANGE_RATE_API_URL
from ..core.currency import DEFAULT_AMOUNT_TOLERANCE, round_money
from ..core.dates import FinancialDate, parse_regional_date
from ..core.errors import ExchangeRateError
from ..core.models import CrossCurrencyResult, Currency
from ..core.money import Money

logger = logging.getLogger(__name__)

DEFAULT_CACHE_HOURS = 24
DEFAULT_TOLERANCE_PERCENT = Decimal("5")


@dataclass(frozen=True)
class ExchangeRate:
    """Official rate for one day."""

    date: str  # ISO date
    buy: Decimal
    sell: Decimal


class ExchangeRateCache:
    """In-memory rate cache keyed by ISO date, with a time-to-live."""

    def __init__(self, ttl_seconds: float = DEFAULT_CACHE_HOURS * 3600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[ExchangeRate, float]] = {}

    def get(self, iso_date: str) -> ExchangeRate | None:
        """Get a cached rate if present and not expired."""
        entry = self._entries.get(iso_date)
        if entry is None:
            return None

        rate, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[iso_date]
            return None
        return rate

    def put(self, iso_date: str, rate: ExchangeRate) -> None:
        self._entries[iso_date] = (rate, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, iso_date: object) -> bool:
        return isinstance(iso_date, str) and self.get(iso_date) is not None

    def __len__(self) -> int:
        return len(self._entries)


def normalize_rate_date(value: Any) -> str | None:
    """Normalize an ISO or DD/MM/YYYY date (or date object) to an ISO string."""
    parsed = parse_regional_date(value)
    return parsed.to_iso_string() if parsed else None


def _rate_value(data: dict[str, Any], key: str) -> Decimal:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ExchangeRateError(f"Invalid API response: missing {key}")
    if not math.isfinite(value):
        raise ExchangeRateError(f"Invalid API response: {key} is not a valid number")
    return Decimal(str(value))


class ExchangeRateProvider:
    """
    Fetches, caches and applies historical USD/ARS rates.

    Args:
        base_url: Endpoint prefix; the date is appended as /YYYY/MM/DD
        timeout: HTTP timeout in seconds
        cache: Rate cache (default: a new 24h cache)
        client: Optional shared httpx.AsyncClient; when omitted a client is
            opened per fetch/prefetch call
    """

    def __init__(
        self,
        base_url: str = DEFAULT_EXCHANGE_RATE_API_URL,
        timeout: float = 10.0,
        cache: ExchangeRateCache | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache or ExchangeRateCache()
        self._client = client

    @classmethod
    def from_config(cls, config: Any, client: httpx.AsyncClient | None = None) -> "ExchangeRateProvider":
        """Build a provider from the application Config."""
        rate_config = config.exchange_rate
        return cls(
            base_url=rate_config.api_url,
            timeout=rate_config.timeout,
            cache=ExchangeRateCache(ttl_seconds=rate_config.cache_hours * 3600),
            client=client,
        )

    def url_for(self, iso_date: str) -> str:
        year, month, day = iso_date.split("-")
        return f"{self.base_url}/{year}/{month}/{day}"

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            yield client

    async def _fetch_with(self, client: httpx.AsyncClient, iso_date: str) -> ExchangeRate:
        cached = self.cache.get(iso_date)
        if cached is not None:
            return cached

        url = self.url_for(iso_date)
        logger.debug(f"Fetching exchange rate for {iso_date}: {url}")

        try:
            response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ExchangeRateError(f"Failed to fetch exchange rate: {e}", date=iso_date) from e

        if response.status_code != 200:
            raise ExchangeRateError(
                f"Failed to fetch exchange rate: HTTP {response.status_code}",
                date=iso_date,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ExchangeRateError("Invalid API response: body is not JSON", date=iso_date) from e

        if not isinstance(data, dict):
            raise ExchangeRateError("Invalid API response: data is not an object", date=iso_date)

        try:
            rate = ExchangeRate(
                date=str(data.get("fecha") or iso_date),
                buy=_rate_value(data, "compra"),
                sell=_rate_value(data, "venta"),
            )
        except ExchangeRateError as e:
            e.date = iso_date
            raise

        self.cache.put(iso_date, rate)
        return rate

    async def fetch(self, date: Any) -> ExchangeRate:
        """
        Get the rate for a date, from cache or from the API.

        Raises:
            ExchangeRateError: Invalid date, HTTP failure or malformed response
        """
        iso_date = normalize_rate_date(date)
        if iso_date is None:
            raise ExchangeRateError(f"Invalid date format: {date}")

        async with self._session() as client:
            return await self._fetch_with(client, iso_date)

    async def prefetch(self, dates: Iterable[Any]) -> dict[str, ExchangeRateError]:
        """
        Warm the cache for a batch of dates.

        Invalid dates are dropped with a warning, duplicates and cached dates
        are skipped, and the rest are fetched concurrently. A failure for one
        date is logged and does not affect the others.

        Returns:
            Failed ISO dates mapped to their error
        """
        pending: list[str] = []
        for date in dates:
            iso_date = normalize_rate_date(date)
            if iso_date is None:
                logger.warning(f"Invalid date format dropped during prefetch: {date!r}")
                continue
            if iso_date not in pending and self.cache.get(iso_date) is None:
                pending.append(iso_date)

        if not pending:
            return {}

        async with self._session() as client:
            results = await asyncio.gather(
                *(self._fetch_with(client, iso_date) for iso_date in pending),
                return_exceptions=True,
            )

        failures: dict[str, ExchangeRateError] = {}
        for iso_date, result in zip(pending, results):
            if isinstance(result, ExchangeRateError):
                logger.warning(f"Failed to prefetch exchange rate for {iso_date}: {result}")
                failures[iso_date] = result
            elif isinstance(result, BaseException):
                raise result

        logger.info(f"Prefetched {len(pending) - len(failures)}/{len(pending)} exchange rates")
        return failures

    def prefetch_sync(self, dates: Iterable[Any]) -> dict[str, ExchangeRateError]:
        """Run prefetch() to completion from synchronous code."""
        return asyncio.run(self.prefetch(list(dates)))

    def get_sync(self, date: Any) -> ExchangeRate | None:
        """Read a rate from the cache only; None on a miss or an invalid date."""
        iso_date = normalize_rate_date(date)
        if iso_date is None:
            return None
        return self.cache.get(iso_date)

    def amounts_match_cross_currency(
        self,
        document_amount: Money,
        document_currency: Currency,
        document_date: FinancialDate | str | None,
        payment_amount: Money,
        tolerance_percent: Decimal = DEFAULT_TOLERANCE_PERCENT,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    ) -> CrossCurrencyResult:
        """
        Compare a document amount with a local-currency payment.

        ARS documents compare by absolute value within amount_tolerance.
        USD documents are converted at the cached sell rate for the document
        date, rounded to cents, and must fall within +/- tolerance_percent.

        Example:
            USD 100.00 at sell rate 1250 -> expected ARS 125000.00, so any
            payment from 118750.00 to 131250.00 matches at 5%.
        """
        if document_currency is Currency.ARS:
            return CrossCurrencyResult(
                matches=document_amount.within(payment_amount, Money.from_decimal(amount_tolerance)),
                is_cross_currency=False,
            )

        rate = self.get_sync(document_date)
        if rate is None:
            logger.warning(
                f"Exchange rate cache miss for {document_date} - USD amount {document_amount.to_decimal()} "
                f"cannot be matched against payment {payment_amount.to_decimal()}"
            )
            return CrossCurrencyResult(matches=False, is_cross_currency=True, cache_miss=True)

        expected = round_money(document_amount.abs().to_decimal() * rate.sell)
        factor = tolerance_percent / Decimal(100)
        lower_bound = expected * (1 - factor)
        upper_bound = expected * (1 + factor)
        paid = payment_amount.abs().to_decimal()

        return CrossCurrencyResult(
            matches=lower_bound <= paid <= upper_bound,
            is_cross_currency=True,
            rate=rate.sell,
            expected_amount=Money.from_decimal(expected),
        )
