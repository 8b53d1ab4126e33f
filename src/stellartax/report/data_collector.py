"""Collects ledger + FIFO output into per-sheet row tuples for the Excel report."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from stellartax.accounting.valuation import value_tx_in_eur
from stellartax.domain.enums import AcqKind, Currency
from stellartax.domain.models.fifo import FifoResult
from stellartax.domain.models.ledger import TxRow
from stellartax.domain.models.price import PriceBook
from stellartax.domain.units import CENTS_PER_EUR, MICRO_PER_EUR, STROOPS_PER_UNIT
from stellartax.report.csv_writer import remaining_cost_cents


@dataclass
class ReportData:
    """All data needed to write the xlsx report. Each sheet is a list of row tuples."""

    summary: list[tuple] = field(default_factory=list)
    fills: list[tuple] = field(default_factory=list)
    inventory: list[tuple] = field(default_factory=list)
    transactions: list[tuple] = field(default_factory=list)


def units(stroops: int) -> Decimal:
    return Decimal(stroops) / STROOPS_PER_UNIT


def eur(cents: int) -> Decimal:
    return Decimal(cents) / CENTS_PER_EUR


def eur_price(micro: int) -> Decimal:
    return Decimal(micro) / MICRO_PER_EUR


def naive_utc(when: datetime) -> datetime:
    """openpyxl cannot store tz-aware datetimes."""
    return when.astimezone(UTC).replace(tzinfo=None)


def collect_report_data(
    wallet: str,
    tx_rows: list[TxRow],
    price_book: PriceBook,
    fifo: FifoResult,
) -> ReportData:
    data = ReportData()

    for f in fifo.fills:
        data.fills.append((
            naive_utc(f.disposed_at),
            f.disp_kind.value,
            f.tx_hash,
            f.currency.value,
            units(f.amount_stroops),
            f.batch_id,
            naive_utc(f.acquired_at),
            eur_price(f.acq_price_micro),
            eur_price(f.disp_price_micro),
            eur(f.proceeds_cents),
            eur(f.cost_cents),
            eur(f.gain_loss_cents),
        ))

    for currency, batches in fifo.ending_batches.items():
        for b in batches:
            if b.qty_remaining_stroops == 0:
                continue
            data.inventory.append((
                currency.value,
                b.batch_id,
                None if b.acq_kind is AcqKind.EURC_PAR else naive_utc(b.acquired_at),
                eur_price(b.price_micro_at_acq),
                units(b.qty_initial_stroops),
                units(b.qty_remaining_stroops),
                eur(remaining_cost_cents(b)),
            ))

    for tx in tx_rows:
        valuation = value_tx_in_eur(tx, price_book)
        data.transactions.append((
            naive_utc(tx.date),
            tx.transaction_hash,
            ", ".join(op.kind for op in tx.ops),
            units(tx.fee_stroops),
            units(tx.balances.xlm),
            units(tx.balances.usdc),
            units(tx.balances.eurc),
            eur(valuation.balances.total_cents),
        ))

    proceeds = sum(f.proceeds_cents for f in fifo.fills)
    cost = sum(f.cost_cents for f in fifo.fills)
    fees = sum(f.cost_cents for f in fifo.fills if f.disp_kind.is_fee)
    data.summary.extend([
        ("Wallet", wallet),
        ("Transactions", len(tx_rows)),
        ("Fills", len(fifo.fills)),
        ("Proceeds (EUR)", eur(proceeds)),
        ("Cost (EUR)", eur(cost)),
        ("Realized P/L (EUR)", eur(fifo.total_gain_loss_cents)),
        ("of which fees (EUR)", eur(-fees)),
    ])
    if tx_rows:
        for currency in Currency:
            data.summary.append((f"Ending {currency.value}", units(tx_rows[-1].balances.get(currency))))

    return data
