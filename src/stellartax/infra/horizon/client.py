"""Paginated Horizon REST client: one wallet's transactions, operations and trade effects."""

import logging
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from stellartax.domain.models.ledger import TxWithOps
from stellartax.exceptions import ExternalServiceError
from stellartax.infra.http.rate_limited_client import RateLimitedClient
from stellartax.ledger.builder import OFFER_OP_TYPES

logger = logging.getLogger(__name__)

PAGE_LIMIT = 200  # Horizon max page size


def is_wallet_op(op: dict[str, Any], wallet: str) -> bool:
    """Drop dusting spam: payments and claimable balances that never touch the wallet."""
    if op.get("type") == "payment":
        return op.get("source_account") == wallet or op.get("to") == wallet
    if op.get("type") == "create_claimable_balance":
        return any(c.get("destination") == wallet for c in op.get("claimants", []))
    return True


class HorizonClient:
    def __init__(self, base_url: str, http_client: RateLimitedClient) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _get(self, url: str, params: dict | None = None) -> dict[str, Any]:
        try:
            resp = await self._http.get(url, params=params)
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"Horizon request failed: {url}: {exc}") from exc

        if resp.status_code == 404:
            return {"_embedded": {"records": []}}
        if resp.status_code != 200:
            raise ExternalServiceError(f"Horizon returned {resp.status_code} for {url}")
        return resp.json()

    async def _fetch_all(self, path: str) -> list[dict[str, Any]]:
        """Follow _links.next until a page comes back shorter than the limit."""
        records: list[dict[str, Any]] = []
        page = await self._get(f"{self._base_url}{path}", params={"limit": PAGE_LIMIT, "order": "asc"})
        while True:
            batch = page.get("_embedded", {}).get("records", [])
            records.extend(batch)
            next_href = page.get("_links", {}).get("next", {}).get("href")
            if len(batch) < PAGE_LIMIT or not next_href:
                break
            page = await self._get(next_href)
        return records

    async def fetch_transactions(self, wallet: str) -> list[dict[str, Any]]:
        txs = await self._fetch_all(f"/accounts/{wallet}/transactions")
        logger.info("Fetched %d transactions for %s", len(txs), wallet)
        return txs

    async def fetch_operations(self, tx_hash: str, wallet: str) -> list[dict[str, Any]]:
        ops = await self._fetch_all(f"/transactions/{tx_hash}/operations")
        return [op for op in ops if is_wallet_op(op, wallet)]

    async def fetch_trade_effects(self, op_id: str, wallet: str) -> list[dict[str, Any]]:
        effects = await self._fetch_all(f"/operations/{op_id}/effects")
        return [e for e in effects if e.get("type") == "trade" and e.get("account") == wallet]

    async def fetch_transactions_with_ops(self, wallet: str) -> list[TxWithOps]:
        """Transactions in ledger order, each with its wallet-relevant ops and offer trades."""
        result: list[TxWithOps] = []
        for tx in await self.fetch_transactions(wallet):
            ops = await self.fetch_operations(tx["hash"], wallet)
            trades: dict[str, list[dict[str, Any]]] = {}
            for op in ops:
                if op.get("type") in OFFER_OP_TYPES and op.get("source_account") == wallet:
                    trades[str(op["id"])] = await self.fetch_trade_effects(str(op["id"]), wallet)
            result.append(TxWithOps(tx=tx, ops=ops, trades=trades))
        logger.info("Fetched operations for %d transactions", len(result))
        return result
