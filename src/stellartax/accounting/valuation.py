"""Per-transaction EUR valuation of fees, balances and cash flow.

Lookups are lenient: a missing price yields None for a balance and 0 for the
fee and flow columns.
"""

from pydantic import BaseModel

from stellartax.domain.enums import Currency, Direction
from stellartax.domain.models.ledger import (
    BlendDepositOp,
    BlendWithdrawOp,
    CreateAccountOp,
    OperationSummary,
    PaymentOp,
    SellOfferOp,
    SwapFeeOp,
    SwapOp,
    TxRow,
)
from stellartax.domain.models.price import PriceBook
from stellartax.domain.units import value_cents_from_stroops
from stellartax.pricing.date_keys import date_key_utc


class BalanceEuroValuation(BaseModel):
    xlm_cents: int | None = None
    usdc_cents: int | None = None
    eurc_cents: int | None = None
    total_cents: int = 0

    def for_currency(self, currency: Currency) -> int | None:
        return getattr(self, f"{currency.value.lower()}_cents")


class CashFlow(BaseModel):
    in_cents: int = 0
    out_cents: int = 0

    @property
    def net_cents(self) -> int:
        return self.in_cents - self.out_cents


class EuroValuation(BaseModel):
    fee_eur_cents: int = 0
    balances: BalanceEuroValuation = BalanceEuroValuation()
    flow: CashFlow = CashFlow()


def _op_legs(op: OperationSummary) -> list[tuple[Currency, int, bool]]:
    """(currency, stroops, incoming) legs of an operation that moves value."""
    match op:
        case CreateAccountOp():
            return [(Currency.XLM, op.amount_stroops, True)]
        case PaymentOp():
            return [(op.currency, op.amount_stroops, op.direction == Direction.IN)]
        case SwapOp() | SellOfferOp():
            return [
                (op.source_currency, op.source_amount_stroops, False),
                (op.destination_currency, op.destination_amount_stroops, True),
            ]
        case BlendWithdrawOp():
            return [(op.currency, op.amount_stroops, True)]
        case BlendDepositOp() | SwapFeeOp():
            return [(op.currency, op.amount_stroops, False)]
        case _:
            return []


def value_tx_in_eur(tx_row: TxRow, price_book: PriceBook) -> EuroValuation:
    dk = date_key_utc(tx_row.date)

    fee_micro = price_book.get_micro(Currency.XLM, dk)
    fee_cents = value_cents_from_stroops(tx_row.fee_stroops, fee_micro) if fee_micro else 0

    per_currency: dict[Currency, int | None] = {}
    for currency in Currency:
        micro = price_book.get_micro(currency, dk)
        per_currency[currency] = (
            value_cents_from_stroops(tx_row.balances.get(currency), micro) if micro else None
        )
    balances = BalanceEuroValuation(
        xlm_cents=per_currency[Currency.XLM],
        usdc_cents=per_currency[Currency.USDC],
        eurc_cents=per_currency[Currency.EURC],
        total_cents=sum(v for v in per_currency.values() if v is not None),
    )

    flow = CashFlow()
    for op in tx_row.ops:
        for currency, stroops, incoming in _op_legs(op):
            micro = price_book.get_micro(currency, dk)
            if not micro:
                continue
            cents = value_cents_from_stroops(stroops, micro)
            if incoming:
                flow.in_cents += cents
            else:
                flow.out_cents += cents

    return EuroValuation(fee_eur_cents=fee_cents, balances=balances, flow=flow)
