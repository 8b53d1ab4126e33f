"""Tests for RateLimitedClient per-host spacing."""

from unittest.mock import AsyncMock, MagicMock, patch

from stellartax.infra.http.rate_limited_client import RateLimitedClient


async def _client(**kwargs) -> RateLimitedClient:
    client = RateLimitedClient(**kwargs)
    await client.close()
    client._client = MagicMock()
    client._client.get = AsyncMock(return_value=MagicMock(status_code=200))
    return client


class TestRateLimitedClient:
    async def test_same_host_is_spaced(self):
        client = await _client(rate_per_second=1.0)
        with patch("stellartax.infra.http.rate_limited_client.asyncio.sleep", new=AsyncMock()) as sleep:
            await client.get("https://horizon.example/a")
            await client.get("https://horizon.example/b", params={"limit": 1})

        sleep.assert_awaited_once()
        assert 0 < sleep.await_args.args[0] <= 1.0
        client._client.get.assert_awaited_with("https://horizon.example/b", params={"limit": 1})

    async def test_hosts_have_independent_slots(self):
        client = await _client(rate_per_second=1.0)
        with patch("stellartax.infra.http.rate_limited_client.asyncio.sleep", new=AsyncMock()) as sleep:
            await client.get("https://horizon.example/a")
            await client.get("https://api.coingecko.com/b")

        sleep.assert_not_awaited()

    async def test_host_rate_override(self):
        client = await _client(rate_per_second=100.0, host_rates={"api.coingecko.com": 0.5})
        with patch("stellartax.infra.http.rate_limited_client.asyncio.sleep", new=AsyncMock()) as sleep:
            await client.get("https://api.coingecko.com/a")
            await client.get("https://api.coingecko.com/b")

        assert sleep.await_args.args[0] > 1.0
