"""End-to-end run: Horizon fetch → ledger → price book → FIFO → reports."""

import logging
from pathlib import Path
from urllib.parse import urlsplit

from stellartax.accounting.fifo import compute_fifo_fills
from stellartax.config import Settings
from stellartax.db.session import open_price_cache
from stellartax.domain.models.fifo import FifoResult
from stellartax.infra.horizon.client import HorizonClient
from stellartax.infra.http.rate_limited_client import RateLimitedClient
from stellartax.ledger.builder import build_tx_rows
from stellartax.pricing.coingecko import BASE_URL as COINGECKO_URL, CoinGeckoProvider
from stellartax.pricing.frankfurter import FrankfurterProvider
from stellartax.pricing.service import PriceService
from stellartax.report.service import ReportService

logger = logging.getLogger(__name__)


def _host_rates(settings: Settings) -> dict[str, float]:
    return {
        urlsplit(settings.horizon_url).hostname or "": settings.http_rate_per_second,
        urlsplit(COINGECKO_URL).hostname or "": settings.coingecko_rate_per_second,
    }


async def run_pipeline(wallet: str, settings: Settings) -> tuple[FifoResult, list[Path]]:
    """Any failure propagates before a report is written."""
    async with RateLimitedClient(
        rate_per_second=settings.http_rate_per_second,
        host_rates=_host_rates(settings),
    ) as http:
        horizon = HorizonClient(settings.horizon_url, http)
        logger.info("Fetching transactions for wallet %s", wallet)
        raw = await horizon.fetch_transactions_with_ops(wallet)

        tx_rows = build_tx_rows(raw, wallet)

        async with open_price_cache(settings.database_url, echo=settings.debug) as session:
            prices = PriceService(
                session,
                coingecko=CoinGeckoProvider(http, api_key=settings.coingecko_api_key),
                frankfurter=FrankfurterProvider(http),
                days_back=settings.xlm_days_back,
                days_forward=settings.xlm_days_forward,
            )
            price_book = await prices.build_price_book(tx_rows)

    fifo = compute_fifo_fills(tx_rows, price_book)
    paths = ReportService(settings.output_dir).generate(wallet, tx_rows, price_book, fifo)
    return fifo, paths
