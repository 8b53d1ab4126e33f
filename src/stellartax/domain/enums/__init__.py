from stellartax.domain.enums.currency import Currency
from stellartax.domain.enums.fifo import AcqKind, DispKind
from stellartax.domain.enums.operation import Direction
from stellartax.domain.enums.price_source import PriceSource

__all__ = [
    "AcqKind",
    "Currency",
    "Direction",
    "DispKind",
    "PriceSource",
]
