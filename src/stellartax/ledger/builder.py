"""LedgerBuilder: raw Horizon transactions + operations into TxRows with running balances."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from stellartax.domain.enums import Currency, Direction
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
    SwapOp,
    TxRow,
    TxWithOps,
)
from stellartax.domain.units import to_currency, to_stroops
from stellartax.exceptions import UnsupportedOperationError

logger = logging.getLogger(__name__)

OFFER_OP_TYPES = frozenset({"manage_sell_offer", "manage_buy_offer", "create_passive_sell_offer"})
PATH_PAYMENT_OP_TYPES = frozenset({"path_payment_strict_send", "path_payment_strict_receive"})


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class LedgerBuilder:
    """Replays one wallet's operations in order, keeping a single running Balances.

    Only effects on this wallet are recorded; the counterparty side of every
    operation is ignored.
    """

    def __init__(self, wallet_address: str) -> None:
        self._wallet = wallet_address
        self._balances = Balances()
        self._handlers: dict[str, Callable[[dict[str, Any], TxWithOps], list[OperationSummary]]] = {
            "create_account": self._create_account,
            "payment": self._payment,
            "invoke_host_function": self._invoke_host_function,
            "change_trust": self._change_trust,
            "set_options": lambda op, _: [SetOptionsOp()],
            "begin_sponsoring_future_reserves": lambda op, _: [BeginSponsoringOp()],
            "end_sponsoring_future_reserves": lambda op, _: [EndSponsoringOp()],
            "create_claimable_balance": self._create_claimable_balance,
        }
        for op_type in PATH_PAYMENT_OP_TYPES:
            self._handlers[op_type] = self._path_payment
        for op_type in OFFER_OP_TYPES:
            self._handlers[op_type] = self._offer

    @property
    def balances(self) -> Balances:
        return self._balances.model_copy()

    def is_wallet(self, address: str | None) -> bool:
        return address == self._wallet

    def build(self, transactions: list[TxWithOps]) -> list[TxRow]:
        return [self.process(item) for item in transactions]

    def process(self, item: TxWithOps) -> TxRow:
        tx = item.tx
        row_ops: list[OperationSummary] = []

        for op in item.ops:
            handler = self._handlers.get(op.get("type", ""))
            if handler is None:
                raise UnsupportedOperationError(
                    f"Unknown operation type: {op.get('type')} in tx {tx.get('hash')}"
                )
            row_ops.extend(handler(op, item))

        # Fee is debited once per tx, and only when this wallet paid it
        fee_payer = tx.get("fee_account") or tx.get("source_account")
        fee = to_stroops(str(tx.get("fee_charged", "0"))) if self.is_wallet(fee_payer) else 0
        if fee > 0:
            self._balances.debit(Currency.XLM, fee)

        row = TxRow(
            transaction_hash=tx["hash"],
            date=parse_timestamp(tx["created_at"]),
            fee_stroops=fee,
            ops=row_ops,
            balances=self._balances.model_copy(),
        )
        logger.debug("tx %s: %d ops, fee %d", row.transaction_hash, len(row_ops), fee)
        return row

    # --- handlers ---

    def _create_account(self, op: dict[str, Any], item: TxWithOps) -> list[OperationSummary]:
        amount = to_stroops(op["starting_balance"])
        if self.is_wallet(op.get("account")):
            self._balances.credit(Currency.XLM, amount)
            return [CreateAccountOp(from_address=op["funder"], to_address=self._wallet, amount_stroops=amount)]
        if self.is_wallet(op.get("funder")):
            # Funding someone else's account spends our XLM like a payment
            self._balances.debit(Currency.XLM, amount)
            return [PaymentOp(
                direction=Direction.OUT,
                from_address=self._wallet,
                to_address=op["account"],
                currency=Currency.XLM,
                amount_stroops=amount,
            )]
        return []

    def _payment(self, op: dict[str, Any], item: TxWithOps) -> list[OperationSummary]:
        currency = to_currency(op["asset_type"], op.get("asset_code"))
        amount = to_stroops(op["amount"])
        incoming = self.is_wallet(op.get("to"))
        outgoing = self.is_wallet(op.get("from"))
        if incoming == outgoing:
            # Payment to self nets to zero; neither side is us means dust that slipped through
            return []

        if incoming:
            self._balances.credit(currency, amount)
        else:
            self._balances.debit(currency, amount)
        return [PaymentOp(
            direction=Direction.IN if incoming else Direction.OUT,
            from_address=op["from"],
            to_address=op["to"],
            currency=currency,
            amount_stroops=amount,
        )]

    def _path_payment(self, op: dict[str, Any], item: TxWithOps) -> list[OperationSummary]:
        source_currency = to_currency(op["source_asset_type"], op.get("source_asset_code"))
        source_amount = to_stroops(op["source_amount"])
        dest_currency = to_currency(op["asset_type"], op.get("asset_code"))
        dest_amount = to_stroops(op["amount"])
        incoming = self.is_wallet(op.get("to"))
        outgoing = self.is_wallet(op.get("from"))

        if incoming and outgoing and source_currency == dest_currency:
            # Same asset to self: only the path slippage moves value
            net = dest_amount - source_amount
            if net == 0:
                return []
            if net > 0:
                self._balances.credit(dest_currency, net)
            else:
                self._balances.debit(source_currency, -net)
            return [PaymentOp(
                direction=Direction.IN if net > 0 else Direction.OUT,
                from_address=op["from"],
                to_address=op["to"],
                currency=dest_currency,
                amount_stroops=abs(net),
            )]
        if incoming and outgoing:
            self._balances.debit(source_currency, source_amount)
            self._balances.credit(dest_currency, dest_amount)
            return [SwapOp(
                source_currency=source_currency,
                source_amount_stroops=source_amount,
                destination_currency=dest_currency,
                destination_amount_stroops=dest_amount,
            )]
        if incoming:
            self._balances.credit(dest_currency, dest_amount)
            return [PaymentOp(
                direction=Direction.IN,
                from_address=op["from"],
                to_address=op["to"],
                currency=dest_currency,
                amount_stroops=dest_amount,
            )]
        if outgoing:
            self._balances.debit(source_currency, source_amount)
            return [PaymentOp(
                direction=Direction.OUT,
                from_address=op["from"],
                to_address=op["to"],
                currency=source_currency,
                amount_stroops=source_amount,
            )]
        return []

    def _invoke_host_function(self, op: dict[str, Any], item: TxWithOps) -> list[OperationSummary]:
        summaries: list[OperationSummary] = []
        for change in op.get("asset_balance_changes") or []:
            deposit = self.is_wallet(change.get("from"))
            withdraw = self.is_wallet(change.get("to"))
            if not (deposit or withdraw):
                continue
            if change.get("type") != "transfer":
                raise UnsupportedOperationError(
                    f"Expected balance change to be a transfer, got {change.get('type')} "
                    f"in tx {item.tx.get('hash')}"
                )

            currency = to_currency(change["asset_type"], change.get("asset_code"))
            amount = to_stroops(change["amount"])
            if deposit:
                self._balances.debit(currency, amount)
                summaries.append(BlendDepositOp(
                    from_address=change["from"], to_address=change["to"], currency=currency, amount_stroops=amount,
                ))
            else:
                self._balances.credit(currency, amount)
                summaries.append(BlendWithdrawOp(
                    from_address=change["from"], to_address=change["to"], currency=currency, amount_stroops=amount,
                ))
        return summaries

    def _offer(self, op: dict[str, Any], item: TxWithOps) -> list[OperationSummary]:
        summaries: list[OperationSummary] = []
        for effect in item.trades.get(str(op.get("id")), []):
            if effect.get("type", "trade") != "trade" or not self.is_wallet(effect.get("account")):
                continue
            sold = to_currency(effect["sold_asset_type"], effect.get("sold_asset_code"))
            bought = to_currency(effect["bought_asset_type"], effect.get("bought_asset_code"))
            sold_amount = to_stroops(effect["sold_amount"])
            bought_amount = to_stroops(effect["bought_amount"])

            self._balances.debit(sold, sold_amount)
            self._balances.credit(bought, bought_amount)
            summaries.append(SellOfferOp(
                source_currency=sold,
                source_amount_stroops=sold_amount,
                destination_currency=bought,
                destination_amount_stroops=bought_amount,
            ))
        if not summaries:
            logger.debug("Offer op %s in tx %s produced no trades", op.get("id"), item.tx.get("hash"))
        return summaries

    def _change_trust(self, op: dict[str, Any], item: TxWithOps) -> list[OperationSummary]:
        return [ChangeTrustOp(currency=to_currency(op["asset_type"], op.get("asset_code")))]

    def _create_claimable_balance(self, op: dict[str, Any], item: TxWithOps) -> list[OperationSummary]:
        return [CreateClaimableBalanceOp(amount=op["amount"], asset=op["asset"])]


def build_tx_rows(transactions: list[TxWithOps], wallet_address: str) -> list[TxRow]:
    """Normalize a chronological list of raw transactions for one wallet."""
    rows = LedgerBuilder(wallet_address).build(transactions)
    logger.info("Built %d ledger rows for %s", len(rows), wallet_address)
    return rows
