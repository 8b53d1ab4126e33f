from stellartax.domain.models.fifo import Batch, FifoResult, Fill
from stellartax.domain.models.ledger import (
    Balances,
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
    TxWithOps,
)
from stellartax.domain.models.price import PriceBook, PriceEntry, price_key

__all__ = [
    "Balances",
    "Batch",
    "BeginSponsoringOp",
    "BlendDepositOp",
    "BlendWithdrawOp",
    "ChangeTrustOp",
    "CreateAccountOp",
    "CreateClaimableBalanceOp",
    "EndSponsoringOp",
    "FifoResult",
    "Fill",
    "OperationSummary",
    "PaymentOp",
    "PriceBook",
    "PriceEntry",
    "SellOfferOp",
    "SetOptionsOp",
    "SwapFeeOp",
    "SwapOp",
    "TxRow",
    "TxWithOps",
    "price_key",
]
