"""CoinGecko provider — daily XLM prices in EUR over a date range."""

import logging
from datetime import UTC, datetime

from stellartax.domain.units import to_price_micro
from stellartax.infra.http.rate_limited_client import RateLimitedClient
from stellartax.pricing.backoff import get_json
from stellartax.pricing.date_keys import date_key_utc

logger = logging.getLogger(__name__)

BASE_URL = "https://api.coingecko.com"

COINGECKO_IDS: dict[str, str] = {
    "XLM": "stellar",
}


def daily_closes(points: list[list]) -> dict[str, int]:
    """[[ms, eur], ...] -> {"YYYY-MM-DD": micro}. The last quote of a UTC day wins."""
    by_day: dict[str, int] = {}
    for ms, eur in sorted(points, key=lambda p: p[0]):
        if not isinstance(eur, (int, float)):
            continue
        by_day[date_key_utc(datetime.fromtimestamp(ms / 1000, tz=UTC))] = to_price_micro(eur)
    return by_day


class CoinGeckoProvider:
    def __init__(self, http_client: RateLimitedClient, api_key: str = "") -> None:
        self._http = http_client
        self._api_key = api_key

    async def get_daily_prices(self, symbol: str, from_ts: int, to_ts: int) -> dict[str, int]:
        """Micro-EUR per UTC day between two Unix timestamps; {} for unknown symbols or failures."""
        coingecko_id = COINGECKO_IDS.get(symbol.upper())
        if coingecko_id is None:
            logger.warning("No CoinGecko ID mapping for symbol: %s", symbol)
            return {}

        params = {"vs_currency": "eur", "from": str(from_ts), "to": str(to_ts)}
        if self._api_key:
            params["x_cg_demo_api_key"] = self._api_key

        body = await get_json(
            self._http,
            f"{BASE_URL}/api/v3/coins/{coingecko_id}/market_chart/range",
            params,
            label=f"CoinGecko {symbol}",
        )
        if body is None:
            return {}

        prices = daily_closes(body.get("prices", []))
        logger.debug("CoinGecko %s: %d daily prices", symbol, len(prices))
        return prices
