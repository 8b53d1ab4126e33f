"""Cache of daily EUR prices, one row per (currency, UTC day)."""

from sqlalchemy import BigInteger, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stellartax.db.session import Base, TimestampMixin


class PriceCacheRecord(TimestampMixin, Base):
    __tablename__ = "price_cache"
    __table_args__ = (UniqueConstraint("currency", "date_key", name="uq_price_cache_currency_date_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    currency: Mapped[str] = mapped_column(String(10), index=True)
    date_key: Mapped[str] = mapped_column(String(10), index=True)  # YYYY-MM-DD, UTC
    price_micro_eur: Mapped[int] = mapped_column(BigInteger)
    source: Mapped[str] = mapped_column(String(20))  # coingecko / frankfurter / par
    fetched_at: Mapped[int] = mapped_column(BigInteger, default=0)  # ms since epoch
