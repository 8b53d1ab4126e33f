"""Daily USD->EUR from Frankfurter (ECB reference rates), used to price USDC."""

import logging

from stellartax.domain.units import to_price_micro
from stellartax.infra.http.rate_limited_client import RateLimitedClient
from stellartax.pricing.backoff import get_json

logger = logging.getLogger(__name__)

BASE_URL = "https://api.frankfurter.app"


class FrankfurterProvider:
    def __init__(self, http_client: RateLimitedClient) -> None:
        self._http = http_client

    async def get_usd_eur_micro(self, date_key: str) -> int | None:
        """Micro-EUR per 1 USD on a day (on weekends the ECB rate of the previous business day)."""
        body = await get_json(
            self._http,
            f"{BASE_URL}/{date_key}",
            {"from": "USD", "to": "EUR"},
            label=f"Frankfurter {date_key}",
        )
        if body is None:
            return None

        rate = body.get("rates", {}).get("EUR")
        if not isinstance(rate, (int, float)):
            logger.warning("Frankfurter: missing EUR rate for %s", date_key)
            return None
        return to_price_micro(rate)
