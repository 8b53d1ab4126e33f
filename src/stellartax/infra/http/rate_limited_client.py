import asyncio
import time
from urllib.parse import urlsplit

import httpx


class _HostSlot:
    def __init__(self, rate_per_second: float) -> None:
        self.min_interval = 1.0 / rate_per_second
        self.last_request_time = 0.0
        self.lock = asyncio.Lock()


class RateLimitedClient:
    """Async GET client spacing requests per host.

    Horizon, CoinGecko and Frankfurter have unrelated quotas, so each host gets
    its own interval; hosts missing from `host_rates` use `rate_per_second`.
    """

    def __init__(
        self,
        rate_per_second: float = 2.0,
        timeout: float = 30.0,
        host_rates: dict[str, float] | None = None,
    ) -> None:
        self._default_rate = rate_per_second
        self._host_rates = dict(host_rates or {})
        self._slots: dict[str, _HostSlot] = {}
        self._client = httpx.AsyncClient(timeout=timeout, headers={"Accept": "application/json"})

    def _slot(self, url: str) -> _HostSlot:
        host = urlsplit(url).hostname or ""
        if host not in self._slots:
            self._slots[host] = _HostSlot(self._host_rates.get(host, self._default_rate))
        return self._slots[host]

    async def _wait_for_slot(self, url: str) -> None:
        slot = self._slot(url)
        async with slot.lock:
            elapsed = time.monotonic() - slot.last_request_time
            if elapsed < slot.min_interval:
                await asyncio.sleep(slot.min_interval - elapsed)
            slot.last_request_time = time.monotonic()

    async def get(self, url: str, params: dict | None = None) -> httpx.Response:
        await self._wait_for_slot(url)
        return await self._client.get(url, params=params)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RateLimitedClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
