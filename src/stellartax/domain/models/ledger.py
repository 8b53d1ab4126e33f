"""Normalized ledger rows produced by the ledger builder and read by the FIFO engine."""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from stellartax.domain.enums.currency import Currency
from stellartax.domain.enums.operation import Direction


class Balances(BaseModel):
    """Signed stroop balance per supported currency. Mutable: the builder keeps one running copy."""

    xlm: int = 0
    usdc: int = 0
    eurc: int = 0

    def get(self, currency: Currency) -> int:
        return getattr(self, currency.value.lower())

    def credit(self, currency: Currency, stroops: int) -> None:
        field = currency.value.lower()
        setattr(self, field, getattr(self, field) + stroops)

    def debit(self, currency: Currency, stroops: int) -> None:
        self.credit(currency, -stroops)

    def as_dict(self) -> dict[Currency, int]:
        return {c: self.get(c) for c in Currency}


class _Op(BaseModel):
    model_config = ConfigDict(frozen=True)


class CreateAccountOp(_Op):
    kind: Literal["create_account"] = "create_account"
    from_address: str
    to_address: str
    amount_stroops: int


class PaymentOp(_Op):
    kind: Literal["payment"] = "payment"
    direction: Direction
    from_address: str
    to_address: str
    currency: Currency
    amount_stroops: int


class SwapOp(_Op):
    """Path payment to self: one currency debited, another credited, amounts independent."""

    kind: Literal["swap"] = "swap"
    source_currency: Currency
    source_amount_stroops: int
    destination_currency: Currency
    destination_amount_stroops: int


class SellOfferOp(_Op):
    """This wallet's side of one DEX offer trade."""

    kind: Literal["sell_offer"] = "sell_offer"
    source_currency: Currency
    source_amount_stroops: int
    destination_currency: Currency
    destination_amount_stroops: int


class SwapFeeOp(_Op):
    kind: Literal["swap_fee"] = "swap_fee"
    from_address: str
    to_address: str
    currency: Currency
    amount_stroops: int


class BlendDepositOp(_Op):
    kind: Literal["blend_deposit"] = "blend_deposit"
    from_address: str
    to_address: str
    currency: Currency
    amount_stroops: int


class BlendWithdrawOp(_Op):
    kind: Literal["blend_withdraw"] = "blend_withdraw"
    from_address: str
    to_address: str
    currency: Currency
    amount_stroops: int


class ChangeTrustOp(_Op):
    kind: Literal["change_trust"] = "change_trust"
    currency: Currency


class SetOptionsOp(_Op):
    kind: Literal["set_options"] = "set_options"


class BeginSponsoringOp(_Op):
    kind: Literal["begin_sponsoring_future_reserves"] = "begin_sponsoring_future_reserves"


class EndSponsoringOp(_Op):
    kind: Literal["end_sponsoring_future_reserves"] = "end_sponsoring_future_reserves"


class CreateClaimableBalanceOp(_Op):
    kind: Literal["create_claimable_balance"] = "create_claimable_balance"
    amount: str  # raw Horizon amount, never enters the balances
    asset: str  # "native" or "CODE:ISSUER"


OperationSummary = Annotated[
    Union[
        CreateAccountOp,
        PaymentOp,
        SwapOp,
        SellOfferOp,
        SwapFeeOp,
        BlendDepositOp,
        BlendWithdrawOp,
        ChangeTrustOp,
        SetOptionsOp,
        BeginSponsoringOp,
        EndSponsoringOp,
        CreateClaimableBalanceOp,
    ],
    Field(discriminator="kind"),
]


class TxRow(BaseModel):
    """One ledger transaction with the wallet's balances right after it (fee included)."""

    model_config = ConfigDict(frozen=True)

    transaction_hash: str
    date: datetime
    fee_stroops: int = 0  # 0 unless this wallet paid the fee
    ops: list[OperationSummary] = []
    balances: Balances = Field(default_factory=Balances)


class TxWithOps(BaseModel):
    """Raw Horizon records for one transaction, as handed over by the fetch layer."""

    tx: dict[str, Any]
    ops: list[dict[str, Any]] = []
    trades: dict[str, list[dict[str, Any]]] = {}  # operation id -> trade effects
