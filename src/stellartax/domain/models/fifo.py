"""Domain types for FIFO lot matching over stroop quantities and micro-EUR prices."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from stellartax.domain.enums.currency import Currency
from stellartax.domain.enums.fifo import AcqKind, DispKind


class Batch(BaseModel):
    """An acquisition lot. qty_remaining_stroops only ever shrinks, except for the EURC par lot."""

    batch_id: str  # "XLM#0001", or "EURC#PAR"
    currency: Currency
    acquired_at: datetime
    acq_kind: AcqKind
    acq_tx_hash: str
    price_micro_at_acq: int  # micro-EUR per unit
    qty_initial_stroops: int
    qty_remaining_stroops: int


class Fill(BaseModel):
    """One batch slice consumed by a disposal."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str
    currency: Currency
    amount_stroops: int
    batch_id: str
    acquired_at: datetime
    disposed_at: datetime
    disp_kind: DispKind
    acq_price_micro: int
    disp_price_micro: int
    cost_cents: int  # at the batch's acquisition price
    proceeds_cents: int  # at the disposal price, 0 for fees
    gain_loss_cents: int  # proceeds - cost


class FifoResult(BaseModel):
    fills: list[Fill] = []
    ending_batches: dict[Currency, list[Batch]] = {}

    @property
    def total_gain_loss_cents(self) -> int:
        return sum(f.gain_loss_cents for f in self.fills)
