"""Exception hierarchy. Every failure aborts the run; nothing in the core retries."""

from datetime import datetime


class StellarTaxError(Exception):
    """Base class for all stellartax errors."""


class MissingPriceError(StellarTaxError):
    """The price book has no entry for a required (currency, date) pair."""

    def __init__(self, currency: str, date_key: str) -> None:
        self.currency = currency
        self.date_key = date_key
        super().__init__(f"Missing price for {currency}:{date_key}")


class FifoUnderflowError(StellarTaxError):
    """A disposal asks for more than all open batches of a currency hold."""

    def __init__(self, currency: str, disposed_at: datetime, needed: int, available: int) -> None:
        self.currency = currency
        self.disposed_at = disposed_at
        self.needed = needed
        self.available = available
        super().__init__(self._message())

    def _message(self) -> str:
        return (
            f"FIFO underflow for {self.currency} on {self.disposed_at.isoformat()} "
            f"(need {self.needed}, have {self.available})"
        )


class ParUnderflowError(FifoUnderflowError):
    """Underflow of the single EURC par batch."""

    def _message(self) -> str:
        return (
            f"EURC underflow on {self.disposed_at.isoformat()} "
            f"(need {self.needed}, have {self.available})"
        )


class LedgerError(StellarTaxError):
    """Raw Horizon data the ledger builder cannot normalize."""


class UnsupportedOperationError(LedgerError):
    pass


class UnsupportedAssetError(LedgerError):
    pass


class AmountFormatError(StellarTaxError, ValueError):
    pass


class ExternalServiceError(StellarTaxError):
    """Horizon or a price provider returned an error or an unusable response."""
