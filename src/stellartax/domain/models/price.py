"""The price book: a pre-built (currency, UTC day) -> micro-EUR table."""

from collections.abc import Iterator, Mapping

from pydantic import BaseModel

from stellartax.domain.enums.currency import Currency
from stellartax.domain.enums.price_source import PriceSource
from stellartax.domain.units import MICRO_PER_EUR
from stellartax.exceptions import MissingPriceError


class PriceEntry(BaseModel):
    price_micro_eur: int
    date_key: str  # "YYYY-MM-DD", UTC
    source: PriceSource
    fetched_at: int = 0  # ms since epoch


def price_key(currency: Currency, date_key: str) -> str:
    return f"{currency.value}:{date_key}"


class PriceBook(Mapping[str, PriceEntry]):
    """Read-only lookup keyed "{currency}:{dateKey}". EURC never needs an entry."""

    def __init__(self, entries: Mapping[str, PriceEntry] | None = None) -> None:
        self._entries: dict[str, PriceEntry] = dict(entries or {})

    @classmethod
    def from_prices(cls, prices: Mapping[str, int], source: PriceSource = PriceSource.COINGECKO) -> "PriceBook":
        """Build a book from {"XLM:2025-01-01": 500_000, ...}."""
        entries = {
            key: PriceEntry(price_micro_eur=micro, date_key=key.split(":", 1)[1], source=source)
            for key, micro in prices.items()
        }
        return cls(entries)

    def __getitem__(self, key: str) -> PriceEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get_micro(self, currency: Currency, date_key: str) -> int | None:
        entry = self._entries.get(price_key(currency, date_key))
        return entry.price_micro_eur if entry is not None else None

    def price_micro(self, currency: Currency, date_key: str) -> int:
        """Strict lookup used by the FIFO pass. EURC is always par."""
        if currency.is_par:
            return MICRO_PER_EUR
        micro = self.get_micro(currency, date_key)
        if micro is None:
            raise MissingPriceError(currency.value, date_key)
        return micro
