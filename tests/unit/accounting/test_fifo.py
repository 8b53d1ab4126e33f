"""Tests for FIFO lot matching over ledger rows — no I/O."""

from datetime import UTC, datetime

import pytest

from stellartax.accounting.fifo import PAR_BATCH_ID, FifoEngine, compute_fifo_fills
from stellartax.domain.enums import AcqKind, Currency, Direction, DispKind
from stellartax.domain.models import (
    BlendDepositOp,
    BlendWithdrawOp,
    ChangeTrustOp,
    CreateAccountOp,
    PaymentOp,
    PriceBook,
    SellOfferOp,
    SwapFeeOp,
    SwapOp,
    TxRow,
    TxWithOps,
)
from stellartax.exceptions import FifoUnderflowError, MissingPriceError, ParUnderflowError
from stellartax.ledger.builder import build_tx_rows

WALLET = "GWALLET"
OTHER = "GOTHER"
XLM = 10_000_000  # stroops per unit


def _at(day: int, hour: int = 10) -> datetime:
    return datetime(2025, 1, day, hour, tzinfo=UTC)


def _row(hash_: str, day: int, ops: list, fee: int = 0, hour: int = 10) -> TxRow:
    return TxRow(transaction_hash=hash_, date=_at(day, hour), fee_stroops=fee, ops=ops)


def _pay(direction: Direction, currency: Currency, units: int) -> PaymentOp:
    frm, to = (OTHER, WALLET) if direction == Direction.IN else (WALLET, OTHER)
    return PaymentOp(direction=direction, from_address=frm, to_address=to,
                     currency=currency, amount_stroops=units * XLM)


def _book(**prices: int) -> PriceBook:
    """_book(XLM_1=500_000) -> {"XLM:2025-01-01": 500000}"""
    entries = {}
    for name, micro in prices.items():
        currency, day = name.split("_")
        entries[f"{currency}:2025-01-{int(day):02d}"] = micro
    return PriceBook.from_prices(entries)


class TestAcquisitions:
    def test_create_account_batch(self):
        result = compute_fifo_fills(
            [_row("t1", 1, [CreateAccountOp(from_address=OTHER, to_address=WALLET, amount_stroops=10 * XLM)])],
            _book(XLM_1=500_000),
        )
        [batch] = result.ending_batches[Currency.XLM]
        assert batch.batch_id == "XLM#0001"
        assert batch.acq_kind == AcqKind.CREATE_ACCOUNT
        assert batch.qty_initial_stroops == batch.qty_remaining_stroops == 100_000_000
        assert batch.price_micro_at_acq == 500_000
        assert result.fills == []

    def test_batch_ids_count_per_currency(self):
        result = compute_fifo_fills(
            [
                _row("t1", 1, [_pay(Direction.IN, Currency.XLM, 1)]),
                _row("t2", 1, [_pay(Direction.IN, Currency.USDC, 1)]),
                _row("t3", 1, [_pay(Direction.IN, Currency.XLM, 1)]),
            ],
            _book(XLM_1=500_000, USDC_1=950_000),
        )
        assert [b.batch_id for b in result.ending_batches[Currency.XLM]] == ["XLM#0001", "XLM#0002"]
        assert [b.batch_id for b in result.ending_batches[Currency.USDC]] == ["USDC#0001"]

    def test_zero_acquisition_is_noop(self):
        engine = FifoEngine(_book(XLM_1=500_000))
        assert engine.add_batch(Currency.XLM, 0, _at(1), "t", AcqKind.PAYMENT_IN) is None
        assert engine.batches(Currency.XLM) == []

    def test_missing_acquisition_price(self):
        with pytest.raises(MissingPriceError, match="XLM:2025-01-02"):
            compute_fifo_fills([_row("t1", 2, [_pay(Direction.IN, Currency.XLM, 1)])], _book(XLM_1=500_000))


class TestDisposals:
    def _three_batches(self) -> list[TxRow]:
        return [
            _row("a1", 1, [_pay(Direction.IN, Currency.XLM, 30)]),
            _row("a2", 2, [_pay(Direction.IN, Currency.XLM, 40)]),
            _row("a3", 3, [_pay(Direction.IN, Currency.XLM, 50)]),
        ]

    def _prices(self) -> PriceBook:
        return _book(XLM_1=400_000, XLM_2=500_000, XLM_3=600_000, XLM_4=700_000)

    def test_oldest_batches_consumed_first(self):
        rows = self._three_batches() + [_row("d1", 4, [_pay(Direction.OUT, Currency.XLM, 60)])]
        result = compute_fifo_fills(rows, self._prices())

        assert [(f.batch_id, f.amount_stroops) for f in result.fills] == [
            ("XLM#0001", 30 * XLM),
            ("XLM#0002", 30 * XLM),
        ]
        assert [f.cost_cents for f in result.fills] == [1200, 1500]
        assert [f.proceeds_cents for f in result.fills] == [2100, 2100]
        assert result.total_gain_loss_cents == 1500
        assert all(f.disp_kind == DispKind.PAYMENT_OUT for f in result.fills)

        remaining = [b.qty_remaining_stroops for b in result.ending_batches[Currency.XLM]]
        assert remaining == [0, 10 * XLM, 50 * XLM]

    def test_quantity_conserved(self):
        rows = self._three_batches() + [
            _row("d1", 4, [_pay(Direction.OUT, Currency.XLM, 35)]),
            _row("d2", 4, [_pay(Direction.OUT, Currency.XLM, 41)]),
        ]
        result = compute_fifo_fills(rows, self._prices())
        acquired = sum(b.qty_initial_stroops for b in result.ending_batches[Currency.XLM])
        remaining = sum(b.qty_remaining_stroops for b in result.ending_batches[Currency.XLM])
        disposed = sum(f.amount_stroops for f in result.fills)
        assert acquired == remaining + disposed == 120 * XLM

    def test_fills_point_back_to_batch(self):
        rows = self._three_batches() + [_row("d1", 4, [_pay(Direction.OUT, Currency.XLM, 1)])]
        [fill] = compute_fifo_fills(rows, self._prices()).fills
        assert fill.acquired_at == _at(1)
        assert fill.disposed_at == _at(4)
        assert fill.acq_price_micro == 400_000
        assert fill.disp_price_micro == 700_000
        assert fill.tx_hash == "d1"

    def test_zero_disposal_is_noop(self):
        engine = FifoEngine(_book())
        assert engine.dispose(Currency.XLM, 0, _at(1), "t", DispKind.PAYMENT_OUT) == []


class TestUnderflow:
    def test_message_names_currency_and_date(self):
        rows = [
            _row("a1", 1, [_pay(Direction.IN, Currency.XLM, 5)]),
            _row("d1", 2, [_pay(Direction.OUT, Currency.XLM, 6)]),
        ]
        with pytest.raises(FifoUnderflowError) as exc_info:
            compute_fifo_fills(rows, _book(XLM_1=500_000, XLM_2=500_000))
        err = exc_info.value
        assert "XLM" in str(err)
        assert "2025-01-02" in str(err)
        assert (err.needed, err.available) == (6 * XLM, 5 * XLM)

    def test_failed_disposal_leaves_state_untouched(self):
        engine = FifoEngine(_book(XLM_1=500_000, XLM_2=500_000))
        engine.apply(_row("a1", 1, [_pay(Direction.IN, Currency.XLM, 5)]))
        engine.apply(_row("d1", 2, [_pay(Direction.OUT, Currency.XLM, 2)]))
        fills_before = engine.fills

        with pytest.raises(FifoUnderflowError):
            engine.dispose(Currency.XLM, 4 * XLM, _at(2), "d2", DispKind.PAYMENT_OUT)

        assert engine.fills == fills_before
        assert [b.qty_remaining_stroops for b in engine.batches(Currency.XLM)] == [3 * XLM]

    def test_disposal_with_no_inventory(self):
        with pytest.raises(FifoUnderflowError, match="USDC"):
            compute_fifo_fills([_row("d1", 1, [_pay(Direction.OUT, Currency.USDC, 1)])], _book(USDC_1=950_000))


class TestSwaps:
    def test_swap_uses_implied_price(self):
        rows = [
            _row("a1", 1, [_pay(Direction.IN, Currency.XLM, 100)]),
            _row("s1", 2, [SwapOp(source_currency=Currency.XLM, source_amount_stroops=100 * XLM,
                                  destination_currency=Currency.USDC, destination_amount_stroops=50 * XLM)]),
        ]
        result = compute_fifo_fills(rows, _book(XLM_1=400_000, XLM_2=480_000, USDC_2=950_000))

        [fill] = result.fills
        assert fill.disp_kind == DispKind.SWAP_OUT
        assert fill.disp_price_micro == 475_000
        assert fill.cost_cents == 4000
        assert fill.proceeds_cents == 4750
        assert fill.gain_loss_cents == 750

        [usdc] = result.ending_batches[Currency.USDC]
        assert usdc.acq_kind == AcqKind.SWAP_IN
        assert usdc.price_micro_at_acq == 950_000
        assert usdc.qty_remaining_stroops == 50 * XLM

    def test_sell_offer_matches_like_a_swap(self):
        rows = [
            _row("a1", 1, [_pay(Direction.IN, Currency.XLM, 20)]),
            _row("o1", 2, [SellOfferOp(source_currency=Currency.XLM, source_amount_stroops=20 * XLM,
                                       destination_currency=Currency.EURC, destination_amount_stroops=8 * XLM)]),
        ]
        result = compute_fifo_fills(rows, _book(XLM_1=300_000, XLM_2=400_000))
        [fill] = result.fills
        # 8 EURC at par over 20 XLM
        assert fill.disp_price_micro == 400_000
        assert fill.gain_loss_cents == 800 - 600
        assert result.ending_batches[Currency.EURC][0].qty_remaining_stroops == 8 * XLM

    def test_failed_swap_adds_no_destination_batch(self):
        engine = FifoEngine(_book(XLM_1=400_000, USDC_1=950_000))
        swap = SwapOp(source_currency=Currency.XLM, source_amount_stroops=XLM,
                      destination_currency=Currency.USDC, destination_amount_stroops=XLM)
        with pytest.raises(FifoUnderflowError):
            engine.apply(_row("s1", 1, [swap]))
        assert engine.batches(Currency.USDC) == []

    def test_swap_destination_spent_in_same_row(self):
        rows = [
            _row("a1", 1, [_pay(Direction.IN, Currency.XLM, 100)]),
            _row("s1", 2, [
                SwapOp(source_currency=Currency.XLM, source_amount_stroops=100 * XLM,
                       destination_currency=Currency.USDC, destination_amount_stroops=50 * XLM),
                _pay(Direction.OUT, Currency.USDC, 50),
            ]),
        ]
        result = compute_fifo_fills(rows, _book(XLM_1=400_000, XLM_2=480_000, USDC_2=950_000))
        assert [(f.currency, f.amount_stroops, f.gain_loss_cents) for f in result.fills] == [
            (Currency.XLM, 100 * XLM, 750),
            (Currency.USDC, 50 * XLM, 0),
        ]
        assert [f.disp_kind for f in result.fills] == [DispKind.SWAP_OUT, DispKind.PAYMENT_OUT]
        assert result.ending_batches[Currency.USDC][0].qty_remaining_stroops == 0

    def test_circular_path_payment_keeps_cost_basis(self):
        raw = TxWithOps(
            tx={"hash": "p1", "created_at": "2025-01-02T10:00:00Z", "fee_charged": "0", "source_account": WALLET},
            ops=[{
                "type": "path_payment_strict_send",
                "from": WALLET,
                "to": WALLET,
                "source_asset_type": "native",
                "source_amount": "10.0000000",
                "asset_type": "native",
                "amount": "10.0000000",
            }],
        )
        rows = [_row("a1", 1, [_pay(Direction.IN, Currency.XLM, 10)])] + build_tx_rows([raw], WALLET)
        result = compute_fifo_fills(rows, _book(XLM_1=400_000, XLM_2=600_000))

        assert result.fills == []
        [batch] = result.ending_batches[Currency.XLM]
        assert (batch.batch_id, batch.price_micro_at_acq) == ("XLM#0001", 400_000)
        assert batch.qty_remaining_stroops == 10 * XLM


class TestEurcPar:
    def test_single_par_batch(self):
        rows = [
            _row("a1", 1, [_pay(Direction.IN, Currency.EURC, 10)]),
            _row("a2", 2, [_pay(Direction.IN, Currency.EURC, 5)]),
            _row("d1", 3, [_pay(Direction.OUT, Currency.EURC, 12)]),
        ]
        result = compute_fifo_fills(rows, _book())
        [par] = result.ending_batches[Currency.EURC]
        assert par.batch_id == PAR_BATCH_ID
        assert par.acq_kind == AcqKind.EURC_PAR
        assert par.qty_initial_stroops == 15 * XLM
        assert par.qty_remaining_stroops == 3 * XLM

        [fill] = result.fills
        assert fill.batch_id == PAR_BATCH_ID
        assert fill.cost_cents == fill.proceeds_cents == 1200
        assert fill.gain_loss_cents == 0

    def test_fee_disposal_is_a_loss(self):
        rows = [
            _row("a1", 1, [_pay(Direction.IN, Currency.EURC, 10)]),
            _row("f1", 1, [SwapFeeOp(from_address=WALLET, to_address=OTHER,
                                      currency=Currency.EURC, amount_stroops=XLM)]),
        ]
        [fill] = compute_fifo_fills(rows, _book()).fills
        assert fill.disp_kind == DispKind.SWAP_FEE
        assert fill.proceeds_cents == 0
        assert fill.gain_loss_cents == -100

    def test_par_underflow(self):
        with pytest.raises(ParUnderflowError, match="EURC underflow on 2025-01-01"):
            compute_fifo_fills([_row("d1", 1, [_pay(Direction.OUT, Currency.EURC, 1)])], _book())

    def test_par_underflow_is_fifo_underflow(self):
        assert issubclass(ParUnderflowError, FifoUnderflowError)


class TestFees:
    def test_network_fee_disposed_at_zero(self):
        rows = [
            _row("a1", 1, [_pay(Direction.IN, Currency.XLM, 10)]),
            _row("t2", 2, [ChangeTrustOp(currency=Currency.USDC)], fee=1_000_000),
        ]
        result = compute_fifo_fills(rows, _book(XLM_1=500_000, XLM_2=900_000))
        [fill] = result.fills
        assert fill.disp_kind == DispKind.NETWORK_FEE
        assert fill.disp_price_micro == 0
        assert fill.proceeds_cents == 0
        assert fill.cost_cents == 5
        assert fill.gain_loss_cents == -5

    def test_fee_follows_ops(self):
        # The fee is taken after the tx's own acquisition
        row = _row("t1", 1, [CreateAccountOp(from_address=OTHER, to_address=WALLET, amount_stroops=XLM)], fee=100)
        result = compute_fifo_fills([row], _book(XLM_1=500_000))
        assert result.ending_batches[Currency.XLM][0].qty_remaining_stroops == XLM - 100


class TestBlend:
    def test_deposit_and_withdraw(self):
        rows = [
            _row("a1", 1, [_pay(Direction.IN, Currency.USDC, 100)]),
            _row("b1", 2, [BlendDepositOp(from_address=WALLET, to_address="CPOOL",
                                          currency=Currency.USDC, amount_stroops=100 * XLM)]),
            _row("b2", 3, [BlendWithdrawOp(from_address="CPOOL", to_address=WALLET,
                                           currency=Currency.USDC, amount_stroops=101 * XLM)]),
        ]
        result = compute_fifo_fills(rows, _book(USDC_1=900_000, USDC_2=920_000, USDC_3=930_000))

        [fill] = result.fills
        assert fill.disp_kind == DispKind.BLEND_DEPOSIT
        assert fill.gain_loss_cents == 9200 - 9000

        batches = result.ending_batches[Currency.USDC]
        assert batches[1].acq_kind == AcqKind.BLEND_WITHDRAW
        assert batches[1].price_micro_at_acq == 930_000
        assert batches[1].qty_remaining_stroops == 101 * XLM


class TestResult:
    def test_ending_batches_are_copies(self):
        engine = FifoEngine(_book(XLM_1=500_000))
        engine.apply(_row("a1", 1, [_pay(Direction.IN, Currency.XLM, 1)]))
        result = engine.result()
        result.ending_batches[Currency.XLM][0].qty_remaining_stroops = 0
        assert engine.batches(Currency.XLM)[0].qty_remaining_stroops == XLM

    def test_empty_input(self):
        result = compute_fifo_fills([], _book())
        assert result.fills == []
        assert result.ending_batches[Currency.XLM] == []
        assert result.ending_batches[Currency.EURC][0].qty_remaining_stroops == 0


class TestReplayInvariants:
    def _mixed_rows(self) -> list[TxRow]:
        return [
            _row("a1", 1, [_pay(Direction.IN, Currency.XLM, 100)], fee=1_000_000),
            _row("a2", 1, [_pay(Direction.IN, Currency.EURC, 20)], hour=11),
            _row("s1", 2, [SwapOp(source_currency=Currency.XLM, source_amount_stroops=40 * XLM,
                                  destination_currency=Currency.USDC, destination_amount_stroops=20 * XLM)],
                 fee=100),
            _row("o1", 2, [SellOfferOp(source_currency=Currency.USDC, source_amount_stroops=5 * XLM,
                                       destination_currency=Currency.EURC, destination_amount_stroops=4 * XLM)],
                 hour=12),
            _row("d1", 3, [_pay(Direction.OUT, Currency.EURC, 22), _pay(Direction.OUT, Currency.USDC, 10)],
                 fee=100),
            _row("a3", 3, [_pay(Direction.IN, Currency.XLM, 5)], hour=12),
            _row("d2", 3, [_pay(Direction.OUT, Currency.XLM, 60)], hour=13),
        ]

    def _prices(self) -> PriceBook:
        return _book(XLM_1=400_000, XLM_2=450_000, XLM_3=500_000, USDC_1=950_000, USDC_2=940_000, USDC_3=930_000)

    def test_same_input_same_output(self):
        first = compute_fifo_fills(self._mixed_rows(), self._prices())
        second = compute_fifo_fills(self._mixed_rows(), self._prices())
        assert first.model_dump_json() == second.model_dump_json()

    def test_quantity_conserved_after_every_row(self):
        engine = FifoEngine(self._prices())
        for row in self._mixed_rows():
            engine.apply(row)
            fills = engine.fills
            for currency in Currency:
                batches = engine.batches(currency)
                acquired = sum(b.qty_initial_stroops for b in batches)
                remaining = sum(b.qty_remaining_stroops for b in batches)
                disposed = sum(f.amount_stroops for f in fills if f.currency == currency)
                assert acquired - disposed == remaining, (row.transaction_hash, currency)
