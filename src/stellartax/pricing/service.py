"""PriceService — builds the price book up front: cache lookup → provider fetch → cache store."""

import logging
import time
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stellartax.db.models.price_cache import PriceCacheRecord
from stellartax.domain.enums import Currency, PriceSource
from stellartax.domain.models.ledger import TxRow
from stellartax.domain.models.price import PriceBook, PriceEntry, price_key
from stellartax.domain.units import MICRO_PER_EUR
from stellartax.exceptions import MissingPriceError
from stellartax.pricing.coingecko import CoinGeckoProvider
from stellartax.pricing.date_keys import date_key_utc, parse_date_key
from stellartax.pricing.frankfurter import FrankfurterProvider

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class PriceService:
    """EURC is par, USDC comes from Frankfurter, XLM from CoinGecko in hydrated ranges."""

    def __init__(
        self,
        session: AsyncSession,
        coingecko: CoinGeckoProvider | None = None,
        frankfurter: FrankfurterProvider | None = None,
        days_back: int = 60,
        days_forward: int = 30,
    ) -> None:
        self._session = session
        self._coingecko = coingecko
        self._frankfurter = frankfurter
        self._days_back = days_back
        self._days_forward = days_forward

    async def build_price_book(self, tx_rows: list[TxRow]) -> PriceBook:
        """Every supported currency priced on every UTC day that has a transaction."""
        date_keys = sorted({date_key_utc(row.date) for row in tx_rows})

        book: dict[str, PriceEntry] = {}
        for dk in date_keys:
            for currency in Currency:
                entry = await self.get_entry(currency, dk)
                if entry is None:
                    raise MissingPriceError(currency.value, dk)
                book[price_key(currency, dk)] = entry

        logger.info("Price book: %d entries over %d days", len(book), len(date_keys))
        return PriceBook(book)

    async def get_entry(self, currency: Currency, date_key: str) -> PriceEntry | None:
        cached = await self._cache_lookup(currency, date_key)
        if cached is not None:
            return cached

        if currency is Currency.EURC:
            return await self._cache_store(currency, date_key, MICRO_PER_EUR, PriceSource.PAR)

        if currency is Currency.USDC:
            if self._frankfurter is None:
                return None
            micro = await self._frankfurter.get_usd_eur_micro(date_key)
            if micro is None:
                return None
            return await self._cache_store(currency, date_key, micro, PriceSource.FRANKFURTER)

        await self._hydrate_xlm_around(date_key)
        return await self._cache_lookup(currency, date_key)

    async def _hydrate_xlm_around(self, date_key: str) -> None:
        """Fetch a window of XLM days in one CoinGecko call to stay under the rate limit."""
        if self._coingecko is None:
            return

        center = datetime.combine(parse_date_key(date_key), datetime.min.time(), tzinfo=UTC)
        from_ts = int((center - timedelta(days=self._days_back)).timestamp())
        to_ts = int((center + timedelta(days=self._days_forward)).timestamp())

        daily = await self._coingecko.get_daily_prices(Currency.XLM.value, from_ts, to_ts)
        stored = 0
        for dk, micro in daily.items():
            if await self._cache_lookup(Currency.XLM, dk) is None:
                await self._cache_store(Currency.XLM, dk, micro, PriceSource.COINGECKO)
                stored += 1
        logger.info("Hydrated %d XLM prices around %s", stored, date_key)

    async def _cache_lookup(self, currency: Currency, date_key: str) -> PriceEntry | None:
        result = await self._session.execute(
            select(PriceCacheRecord).where(
                PriceCacheRecord.currency == currency.value,
                PriceCacheRecord.date_key == date_key,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return PriceEntry(
            price_micro_eur=row.price_micro_eur,
            date_key=row.date_key,
            source=PriceSource(row.source),
            fetched_at=row.fetched_at,
        )

    async def _cache_store(
        self, currency: Currency, date_key: str, micro: int, source: PriceSource
    ) -> PriceEntry:
        entry = PriceEntry(price_micro_eur=micro, date_key=date_key, source=source, fetched_at=_now_ms())
        try:
            async with self._session.begin_nested():
                self._session.add(PriceCacheRecord(
                    currency=currency.value,
                    date_key=date_key,
                    price_micro_eur=micro,
                    source=source.value,
                    fetched_at=entry.fetched_at,
                ))
        except IntegrityError:
            # Already cached by an earlier run; the savepoint rolled back only this insert
            logger.debug("Price %s:%s already cached", currency.value, date_key)
        return entry
