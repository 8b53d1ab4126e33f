from enum import Enum


class AcqKind(str, Enum):
    """What created a batch."""

    CREATE_ACCOUNT = "create_account"
    PAYMENT_IN = "payment_in"
    SWAP_IN = "swap_in"
    BLEND_WITHDRAW = "blend_withdraw"
    EURC_PAR = "eurc_par"


class DispKind(str, Enum):
    """What consumed a batch slice."""

    PAYMENT_OUT = "payment_out"
    SWAP_OUT = "swap_out"
    BLEND_DEPOSIT = "blend_deposit"
    SWAP_FEE = "swap_fee"
    NETWORK_FEE = "network_fee"

    @property
    def is_fee(self) -> bool:
        return self in (DispKind.SWAP_FEE, DispKind.NETWORK_FEE)
