"""CSV reports: fills, ending inventory, per-transaction ledger and the Finnish FIFO event log.

Numbers use a comma decimal separator so EU-locale spreadsheets read them as numbers.
"""

import csv
import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from stellartax.accounting.valuation import value_tx_in_eur
from stellartax.domain.enums import AcqKind, Currency, DispKind
from stellartax.domain.models.fifo import Batch, Fill
from stellartax.domain.models.ledger import TxRow
from stellartax.domain.models.price import PriceBook
from stellartax.domain.units import format_cents, format_price_micro, to_decimal, value_cents_from_stroops

logger = logging.getLogger(__name__)

EXPLORER_TX_URL = "https://stellar.expert/explorer/public/tx/"

ACQ_KIND_FI: dict[AcqKind, str] = {
    AcqKind.CREATE_ACCOUNT: "Tilin avaus",
    AcqKind.PAYMENT_IN: "Maksu sisään",
    AcqKind.SWAP_IN: "Vaihto (sisään)",
    AcqKind.BLEND_WITHDRAW: "Blend-nosto",
    AcqKind.EURC_PAR: "EURC nimellisarvo",
}

DISP_KIND_FI: dict[DispKind, str] = {
    DispKind.PAYMENT_OUT: "Maksu ulos",
    DispKind.SWAP_OUT: "Vaihto (ulos)",
    DispKind.BLEND_DEPOSIT: "Blend-talletus",
    DispKind.SWAP_FEE: "Vaihtopalkkio",
    DispKind.NETWORK_FEE: "Verkkopalkkio",
}

FILLS_COLUMNS = [
    "Disposed At (UTC)",
    "Disposal kind",
    "Tx Hash",
    "Currency",
    "Qty (units)",
    "Batch ID",
    "Acquired At (UTC)",
    "Acq Price (EUR/unit)",
    "Disp Price (EUR/unit)",
    "Proceeds (EUR)",
    "Cost (EUR)",
    "P/L (EUR)",
]

INVENTORY_COLUMNS = [
    "Currency",
    "Batch ID",
    "Acquired At (UTC)",
    "Acq Price (EUR/unit)",
    "Qty Initial (units)",
    "Qty Remaining (units)",
    "Remaining Cost (EUR)",
]

TRANSACTIONS_COLUMNS = [
    "Päivämäärä (UTC)",
    "Luovutuksen tyyppi",
    "Luovutuserien ID:t",
    "Tyyppi",
    "Arvo sisään (€)",
    "Arvo ulos (€)",
    "Nettoarvo (€)",
    "Luovutushinta (€)",
    "Hankintameno (€)",
    "FIFO-voitto/tappio (€)",
    "Verkkopalkkio (XLM)",
    "Verkkopalkkio (€)",
    "XLM-saldo",
    "XLM-saldo (€)",
    "USDC-saldo",
    "USDC-saldo (€)",
    "EURC-saldo",
    "Kokonaissaldo (€)",
    "Tapahtuman linkki",
]

EVENTS_COLUMNS = [
    "Valuutta",
    "Erä ID",
    "Tyyppi",
    "Toiminto",
    "Hankintahetki (UTC)",
    "Luovutushetki (UTC)",
    "Erän koko (kpl)",
    "Erää jäljellä (kpl)",
    "Määrä (kpl)",
    "Hankintahinta (€/kpl)",
    "Luovutushinta (€/kpl)",
    "Luovutushinta yhteensä (€)",
    "Hankintameno (€)",
    "Voitto/tappio (€)",
    "Tapahtuma",
]


def iso_utc(when: datetime) -> str:
    """2025-04-01T10:00:00.000Z"""
    utc = when.astimezone(UTC) if when.tzinfo else when.replace(tzinfo=UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def _to_csv(columns: list[str], rows: Iterable[dict[str, str]]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=columns, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue()


def _write(path: str | Path, content: str) -> Path:
    target = Path(path)
    target.write_text(content, encoding="utf-8")
    return target


# --- fills ---

def build_fills_csv(fills: Iterable[Fill]) -> str:
    rows = (
        {
            "Disposed At (UTC)": iso_utc(f.disposed_at),
            "Disposal kind": f.disp_kind.value,
            "Tx Hash": f.tx_hash,
            "Currency": f.currency.value,
            "Qty (units)": to_decimal(f.amount_stroops),
            "Batch ID": f.batch_id,
            "Acquired At (UTC)": iso_utc(f.acquired_at),
            "Acq Price (EUR/unit)": format_price_micro(f.acq_price_micro),
            "Disp Price (EUR/unit)": format_price_micro(f.disp_price_micro),
            "Proceeds (EUR)": format_cents(f.proceeds_cents),
            "Cost (EUR)": format_cents(f.cost_cents),
            "P/L (EUR)": format_cents(f.gain_loss_cents),
        }
        for f in fills
    )
    return _to_csv(FILLS_COLUMNS, rows)


def write_fills_csv_file(fills: list[Fill], path: str | Path = "fifo_fills.csv") -> Path:
    target = _write(path, build_fills_csv(fills))
    logger.info("Wrote %s (%d fills)", target, len(fills))
    return target


# --- inventory ---

def remaining_cost_cents(batch: Batch) -> int:
    """Remaining quantity at acquisition price (not marked to market)."""
    return value_cents_from_stroops(batch.qty_remaining_stroops, batch.price_micro_at_acq)


def build_inventory_csv(ending: dict[Currency, list[Batch]]) -> str:
    rows = [
        {
            "Currency": currency.value,
            "Batch ID": b.batch_id,
            "Acquired At (UTC)": iso_utc(b.acquired_at),
            "Acq Price (EUR/unit)": format_price_micro(b.price_micro_at_acq),
            "Qty Initial (units)": to_decimal(b.qty_initial_stroops),
            "Qty Remaining (units)": to_decimal(b.qty_remaining_stroops),
            "Remaining Cost (EUR)": format_cents(remaining_cost_cents(b)),
        }
        for currency, batches in ending.items()
        for b in batches
        if b.qty_remaining_stroops != 0
    ]
    return _to_csv(INVENTORY_COLUMNS, rows)


def write_inventory_csv_file(ending: dict[Currency, list[Batch]], path: str | Path = "fifo_inventory.csv") -> Path:
    target = _write(path, build_inventory_csv(ending))
    logger.info("Wrote %s", target)
    return target


# --- transactions ---

@dataclass
class _TxAggregate:
    proceeds: int = 0
    cost: int = 0
    pl: int = 0
    batch_ids: list[str] = field(default_factory=list)
    disp_kinds: list[DispKind] = field(default_factory=list)


def _index_fills_by_tx(fills: Iterable[Fill]) -> dict[str, _TxAggregate]:
    by_tx: dict[str, _TxAggregate] = {}
    for f in fills:
        agg = by_tx.setdefault(f.tx_hash, _TxAggregate())
        agg.proceeds += f.proceeds_cents
        agg.cost += f.cost_cents
        agg.pl += f.gain_loss_cents
        if f.batch_id not in agg.batch_ids:
            agg.batch_ids.append(f.batch_id)
        if f.disp_kind not in agg.disp_kinds:
            agg.disp_kinds.append(f.disp_kind)
    return by_tx


def _optional_cents(cents: int | None) -> str:
    return format_cents(cents) if cents is not None else ""


def build_transactions_csv(tx_rows: Iterable[TxRow], price_book: PriceBook, fills: Iterable[Fill]) -> str:
    by_tx = _index_fills_by_tx(fills)
    rows = []
    for tx in tx_rows:
        valuation = value_tx_in_eur(tx, price_book)
        agg = by_tx.get(tx.transaction_hash, _TxAggregate())
        rows.append({
            "Päivämäärä (UTC)": iso_utc(tx.date),
            "Luovutuksen tyyppi": ", ".join(DISP_KIND_FI[k] for k in agg.disp_kinds),
            "Luovutuserien ID:t": ", ".join(agg.batch_ids),
            "Tyyppi": ", ".join(op.kind for op in tx.ops),
            "Arvo sisään (€)": format_cents(valuation.flow.in_cents),
            "Arvo ulos (€)": format_cents(valuation.flow.out_cents),
            "Nettoarvo (€)": format_cents(valuation.flow.net_cents),
            "Luovutushinta (€)": format_cents(agg.proceeds),
            "Hankintameno (€)": format_cents(agg.cost),
            "FIFO-voitto/tappio (€)": format_cents(agg.pl),
            "Verkkopalkkio (XLM)": to_decimal(tx.fee_stroops),
            "Verkkopalkkio (€)": format_cents(valuation.fee_eur_cents),
            "XLM-saldo": to_decimal(tx.balances.xlm),
            "XLM-saldo (€)": _optional_cents(valuation.balances.for_currency(Currency.XLM)),
            "USDC-saldo": to_decimal(tx.balances.usdc),
            "USDC-saldo (€)": _optional_cents(valuation.balances.for_currency(Currency.USDC)),
            "EURC-saldo": to_decimal(tx.balances.eurc),
            "Kokonaissaldo (€)": format_cents(valuation.balances.total_cents),
            "Tapahtuman linkki": f"{EXPLORER_TX_URL}{tx.transaction_hash}",
        })
    return _to_csv(TRANSACTIONS_COLUMNS, rows)


def write_transactions_csv_file(
    tx_rows: list[TxRow],
    price_book: PriceBook,
    fills: list[Fill],
    path: str | Path = "transactions.csv",
) -> Path:
    target = _write(path, build_transactions_csv(tx_rows, price_book, fills))
    logger.info("Wrote %s (%d transactions)", target, len(tx_rows))
    return target


# --- FIFO event log ---

def _acquisition_row(b: Batch) -> dict[str, str]:
    return {
        "Valuutta": b.currency.value,
        "Erä ID": b.batch_id,
        "Tyyppi": "Hankinta",
        "Toiminto": ACQ_KIND_FI[b.acq_kind],
        "Hankintahetki (UTC)": iso_utc(b.acquired_at),
        "Luovutushetki (UTC)": "",
        "Erän koko (kpl)": to_decimal(b.qty_initial_stroops),
        "Erää jäljellä (kpl)": to_decimal(b.qty_remaining_stroops),
        "Määrä (kpl)": to_decimal(b.qty_initial_stroops),
        "Hankintahinta (€/kpl)": format_price_micro(b.price_micro_at_acq),
        "Luovutushinta (€/kpl)": "",
        "Luovutushinta yhteensä (€)": "",
        "Hankintameno (€)": format_cents(value_cents_from_stroops(b.qty_initial_stroops, b.price_micro_at_acq)),
        "Voitto/tappio (€)": "",
        "Tapahtuma": b.acq_tx_hash,
    }


def _disposal_row(f: Fill) -> dict[str, str]:
    return {
        "Valuutta": f.currency.value,
        "Erä ID": f.batch_id,
        "Tyyppi": "Luovutus",
        "Toiminto": DISP_KIND_FI[f.disp_kind],
        "Hankintahetki (UTC)": iso_utc(f.acquired_at),
        "Luovutushetki (UTC)": iso_utc(f.disposed_at),
        "Erän koko (kpl)": "",
        "Erää jäljellä (kpl)": "",
        "Määrä (kpl)": to_decimal(-f.amount_stroops),
        "Hankintahinta (€/kpl)": format_price_micro(f.acq_price_micro),
        "Luovutushinta (€/kpl)": format_price_micro(f.disp_price_micro),
        "Luovutushinta yhteensä (€)": format_cents(f.proceeds_cents),
        "Hankintameno (€)": format_cents(f.cost_cents),
        "Voitto/tappio (€)": format_cents(f.gain_loss_cents),
        "Tapahtuma": f.tx_hash,
    }


def _summary_row(currency: Currency, ending_balance: int, fills: list[Fill]) -> dict[str, str]:
    row = dict.fromkeys(EVENTS_COLUMNS, "")
    row.update({
        "Valuutta": currency.value,
        "Tyyppi": "Yhteenveto",
        "Erää jäljellä (kpl)": to_decimal(ending_balance),
        "Luovutushinta yhteensä (€)": format_cents(sum(f.proceeds_cents for f in fills)),
        "Hankintameno (€)": format_cents(sum(f.cost_cents for f in fills)),
        "Voitto/tappio (€)": format_cents(sum(f.gain_loss_cents for f in fills)),
    })
    return row


def build_events_csv(
    ending: dict[Currency, list[Batch]],
    fills: Iterable[Fill],
    tx_rows: list[TxRow],
) -> str:
    """Acquisitions and disposals grouped by currency (alphabetical), oldest first,
    each currency closed by a summary row carrying the ledger's ending balance.

    The EURC par lot is not an acquisition event and is left out.
    """
    fills_by_currency: dict[Currency, list[Fill]] = {}
    for f in fills:
        fills_by_currency.setdefault(f.currency, []).append(f)

    final_balances = tx_rows[-1].balances if tx_rows else None
    rows: list[dict[str, str]] = []

    for currency in sorted(Currency, key=lambda c: c.value):
        events: list[tuple[datetime, int, dict[str, str]]] = [
            (b.acquired_at, 0, _acquisition_row(b))
            for b in ending.get(currency, [])
            if b.acq_kind is not AcqKind.EURC_PAR
        ]
        currency_fills = fills_by_currency.get(currency, [])
        events.extend((f.disposed_at, 1, _disposal_row(f)) for f in currency_fills)
        if not events:
            continue

        events.sort(key=lambda e: (e[0], e[1]))
        rows.extend(row for _, _, row in events)
        ending_balance = final_balances.get(currency) if final_balances is not None else 0
        rows.append(_summary_row(currency, ending_balance, currency_fills))

    return _to_csv(EVENTS_COLUMNS, rows)


def write_events_csv_file(
    ending: dict[Currency, list[Batch]],
    fills: list[Fill],
    tx_rows: list[TxRow],
    path: str | Path = "fifo_events.csv",
) -> Path:
    target = _write(path, build_events_csv(ending, fills, tx_rows))
    logger.info("Wrote %s", target)
    return target
