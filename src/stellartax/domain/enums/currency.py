from enum import Enum


class Currency(str, Enum):
    """Supported Stellar assets. Anything else is rejected by the ledger builder."""

    XLM = "XLM"  # network-native
    USDC = "USDC"  # USD-pegged
    EURC = "EURC"  # Euro-pegged, valued at par

    @property
    def is_par(self) -> bool:
        return self is Currency.EURC
