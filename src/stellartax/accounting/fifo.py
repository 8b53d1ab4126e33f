"""FIFO lot matching over TxRows. Pure and synchronous: no I/O happens here.

Every non-EURC acquisition becomes a batch priced at that day's market price;
disposals consume the oldest batch with anything left. EURC is held in a single
par-valued batch, so its ordinary disposals never realize a gain or loss.
"""

import logging
from datetime import UTC, datetime
from typing import assert_never

from stellartax.domain.enums import AcqKind, Currency, Direction, DispKind
from stellartax.domain.models.fifo import Batch, FifoResult, Fill
from stellartax.domain.models.ledger import (
    BeginSponsoringOp,
    BlendDepositOp,
    BlendWithdrawOp,
    ChangeTrustOp,
    CreateAccountOp,
    CreateClaimableBalanceOp,
    EndSponsoringOp,
    OperationSummary,
    PaymentOp,
    SellOfferOp,
    SetOptionsOp,
    SwapFeeOp,
    SwapOp,
    TxRow,
)
from stellartax.domain.models.price import PriceBook
from stellartax.domain.units import MICRO_PER_EUR, implied_price_micro, value_cents_from_stroops
from stellartax.exceptions import FifoUnderflowError, ParUnderflowError
from stellartax.pricing.date_keys import date_key_utc

logger = logging.getLogger(__name__)

PAR_BATCH_ID = "EURC#PAR"
PAR_TX_HASH = "PAR"
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _par_batch() -> Batch:
    return Batch(
        batch_id=PAR_BATCH_ID,
        currency=Currency.EURC,
        acquired_at=EPOCH,
        acq_kind=AcqKind.EURC_PAR,
        acq_tx_hash=PAR_TX_HASH,
        price_micro_at_acq=MICRO_PER_EUR,
        qty_initial_stroops=0,
        qty_remaining_stroops=0,
    )


class FifoEngine:
    """One-shot replay state: per-currency batch lists in acquisition order plus id counters.

    A disposal is all-or-nothing: availability is checked before any batch is
    touched, so a failed call leaves batches and fills exactly as they were.
    """

    def __init__(self, price_book: PriceBook) -> None:
        self._prices = price_book
        self._inventories: dict[Currency, list[Batch]] = {c: [] for c in Currency}
        self._inventories[Currency.EURC].append(_par_batch())
        self._batch_seq: dict[Currency, int] = {c: 0 for c in Currency if not c.is_par}
        self._fills: list[Fill] = []

    @property
    def fills(self) -> list[Fill]:
        return list(self._fills)

    def batches(self, currency: Currency) -> list[Batch]:
        return list(self._inventories[currency])

    def price_micro(self, currency: Currency, date: datetime) -> int:
        return self._prices.price_micro(currency, date_key_utc(date))

    def run(self, tx_rows: list[TxRow]) -> FifoResult:
        for tx in tx_rows:
            self.apply(tx)
        return self.result()

    def result(self) -> FifoResult:
        return FifoResult(
            fills=list(self._fills),
            ending_batches={c: [b.model_copy() for b in batches] for c, batches in self._inventories.items()},
        )

    def apply(self, tx: TxRow) -> None:
        """Dispatch one transaction's ops in order, then its network fee."""
        for op in tx.ops:
            self._apply_op(op, tx)

        if tx.fee_stroops > 0:
            self.dispose(
                Currency.XLM,
                tx.fee_stroops,
                tx.date,
                tx.transaction_hash,
                DispKind.NETWORK_FEE,
                proceeds_price_micro=0,
            )

    def _apply_op(self, op: OperationSummary, tx: TxRow) -> None:
        date, tx_hash = tx.date, tx.transaction_hash
        match op:
            case CreateAccountOp():
                self.add_batch(Currency.XLM, op.amount_stroops, date, tx_hash, AcqKind.CREATE_ACCOUNT)
            case PaymentOp(direction=Direction.IN):
                self.add_batch(op.currency, op.amount_stroops, date, tx_hash, AcqKind.PAYMENT_IN)
            case PaymentOp():
                self.dispose(op.currency, op.amount_stroops, date, tx_hash, DispKind.PAYMENT_OUT)
            case SwapOp() | SellOfferOp():
                self._swap(op, tx)
            case BlendDepositOp():
                self.dispose(op.currency, op.amount_stroops, date, tx_hash, DispKind.BLEND_DEPOSIT)
            case BlendWithdrawOp():
                self.add_batch(op.currency, op.amount_stroops, date, tx_hash, AcqKind.BLEND_WITHDRAW)
            case SwapFeeOp():
                self.dispose(op.currency, op.amount_stroops, date, tx_hash, DispKind.SWAP_FEE, proceeds_price_micro=0)
            case ChangeTrustOp() | SetOptionsOp() | BeginSponsoringOp() | EndSponsoringOp() | CreateClaimableBalanceOp():
                pass
            case _:
                assert_never(op)

    def _swap(self, op: SwapOp | SellOfferOp, tx: TxRow) -> None:
        # Proceeds are anchored on the acquired leg's market price
        dest_micro = self.price_micro(op.destination_currency, tx.date)
        source_micro = implied_price_micro(
            op.destination_amount_stroops, dest_micro, op.source_amount_stroops
        )
        self.dispose(
            op.source_currency,
            op.source_amount_stroops,
            tx.date,
            tx.transaction_hash,
            DispKind.SWAP_OUT,
            proceeds_price_micro=source_micro,
        )
        self.add_batch(
            op.destination_currency,
            op.destination_amount_stroops,
            tx.date,
            tx.transaction_hash,
            AcqKind.SWAP_IN,
        )

    def add_batch(
        self,
        currency: Currency,
        qty: int,
        date: datetime,
        tx_hash: str,
        acq_kind: AcqKind,
    ) -> Batch | None:
        if qty == 0:
            return None

        if currency.is_par:
            lot = self._inventories[Currency.EURC][0]
            lot.qty_initial_stroops += qty
            lot.qty_remaining_stroops += qty
            return lot

        self._batch_seq[currency] += 1
        batch = Batch(
            batch_id=f"{currency.value}#{self._batch_seq[currency]:04d}",
            currency=currency,
            acquired_at=date,
            acq_kind=acq_kind,
            acq_tx_hash=tx_hash,
            price_micro_at_acq=self.price_micro(currency, date),
            qty_initial_stroops=qty,
            qty_remaining_stroops=qty,
        )
        self._inventories[currency].append(batch)
        logger.debug("%s: +%d stroops @ %d micro (%s)", batch.batch_id, qty, batch.price_micro_at_acq, acq_kind.value)
        return batch

    def dispose(
        self,
        currency: Currency,
        amount: int,
        date: datetime,
        tx_hash: str,
        disp_kind: DispKind,
        proceeds_price_micro: int | None = None,
    ) -> list[Fill]:
        """Consume `amount` stroops FIFO. proceeds_price_micro=None means the day's market price."""
        if amount == 0:
            return []
        if currency.is_par:
            return [self._dispose_par(amount, date, tx_hash, disp_kind, proceeds_price_micro)]

        inventory = self._inventories[currency]
        available = sum(b.qty_remaining_stroops for b in inventory)
        if available < amount:
            raise FifoUnderflowError(currency.value, date, amount, available)

        disposal_price = (
            proceeds_price_micro if proceeds_price_micro is not None else self.price_micro(currency, date)
        )

        fills: list[Fill] = []
        remaining = amount
        for lot in inventory:
            if remaining == 0:
                break
            if lot.qty_remaining_stroops == 0:
                continue
            take = min(remaining, lot.qty_remaining_stroops)
            fills.append(self._make_fill(lot, take, date, tx_hash, disp_kind, disposal_price))
            lot.qty_remaining_stroops -= take
            remaining -= take

        self._fills.extend(fills)
        logger.debug("%s: -%d stroops in %d fill(s) (%s)", currency.value, amount, len(fills), disp_kind.value)
        return fills

    def _dispose_par(
        self,
        amount: int,
        date: datetime,
        tx_hash: str,
        disp_kind: DispKind,
        proceeds_price_micro: int | None,
    ) -> Fill:
        lot = self._inventories[Currency.EURC][0]
        if lot.qty_remaining_stroops < amount:
            raise ParUnderflowError(Currency.EURC.value, date, amount, lot.qty_remaining_stroops)

        disp_price = proceeds_price_micro if proceeds_price_micro is not None else MICRO_PER_EUR
        fill = self._make_fill(lot, amount, date, tx_hash, disp_kind, disp_price)
        lot.qty_remaining_stroops -= amount
        self._fills.append(fill)
        return fill

    @staticmethod
    def _make_fill(
        lot: Batch,
        amount: int,
        date: datetime,
        tx_hash: str,
        disp_kind: DispKind,
        disp_price: int,
    ) -> Fill:
        cost = value_cents_from_stroops(amount, lot.price_micro_at_acq)
        proceeds = value_cents_from_stroops(amount, disp_price)
        return Fill(
            tx_hash=tx_hash,
            currency=lot.currency,
            amount_stroops=amount,
            batch_id=lot.batch_id,
            acquired_at=lot.acquired_at,
            disposed_at=date,
            disp_kind=disp_kind,
            acq_price_micro=lot.price_micro_at_acq,
            disp_price_micro=disp_price,
            cost_cents=cost,
            proceeds_cents=proceeds,
            gain_loss_cents=proceeds - cost,
        )


def compute_fifo_fills(tx_rows: list[TxRow], price_book: PriceBook) -> FifoResult:
    """Replay chronologically ordered TxRows through a fresh FIFO engine."""
    result = FifoEngine(price_book).run(tx_rows)
    logger.info(
        "FIFO: %d fills, realized %d cents",
        len(result.fills),
        result.total_gain_loss_cents,
    )
    return result
