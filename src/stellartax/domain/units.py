"""Fixed-point helpers. Quantities are stroops (10^-7), prices micro-EUR (10^-6), values cents.

Nothing here touches floats: API quotes go through Decimal, everything else is int.
"""

import re
from decimal import ROUND_HALF_UP, Decimal

from stellartax.domain.enums.currency import Currency
from stellartax.exceptions import AmountFormatError, UnsupportedAssetError

STROOPS_PER_UNIT = 10_000_000
MICRO_PER_EUR = 1_000_000
CENTS_PER_EUR = 100
STROOP_DECIMALS = 7

# stroops × micro-EUR → cents
CENTS_DIVISOR = STROOPS_PER_UNIT * MICRO_PER_EUR // CENTS_PER_EUR

_AMOUNT_RE = re.compile(r"^(-?)([0-9]*)(?:\.([0-9]*))?$")


def to_currency(asset_type: str, asset_code: str | None) -> Currency:
    """Map a Horizon (asset_type, asset_code) pair to a supported Currency."""
    if asset_type == "native":
        return Currency.XLM
    if not asset_code:
        raise UnsupportedAssetError("Asset code is required")
    try:
        return Currency(asset_code)
    except ValueError:
        raise UnsupportedAssetError(f"Unsupported asset: {asset_code}") from None


def to_stroops(raw: str) -> int:
    """Convert a Horizon amount to stroops.

    "37702.4250015" is a unit amount and is scaled by 10^7, truncating digits past
    the seventh decimal. A bare integer such as a fee_charged value is already in
    stroops and passes through unchanged.
    """
    clean = raw.strip().replace(",", "")
    match = _AMOUNT_RE.match(clean)
    if match is None or clean in ("", "-", ".", "-."):
        raise AmountFormatError(f"Invalid amount format: {raw}")

    sign, integer_part, decimal_part = match.groups()
    if decimal_part is None:
        value = int(integer_part)
    else:
        fraction = decimal_part.ljust(STROOP_DECIMALS, "0")[:STROOP_DECIMALS]
        value = int(integer_part or "0") * STROOPS_PER_UNIT + int(fraction)
    return -value if sign else value


def to_decimal(stroops: int) -> str:
    """Render stroops as units with a comma decimal separator: 123456789 -> "12,3456789"."""
    sign = "-" if stroops < 0 else ""
    whole, frac = divmod(abs(stroops), STROOPS_PER_UNIT)
    return f"{sign}{whole},{frac:07d}"


def round_half_up_div(numerator: int, denominator: int) -> int:
    """Integer division rounding halves away from zero, so results are sign-symmetric."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator >= 0:
        return (numerator + denominator // 2) // denominator
    return -((-numerator + denominator // 2) // denominator)


def value_cents_from_stroops(stroops: int, price_micro: int) -> int:
    """Value a stroop quantity at a micro-EUR unit price, in cents."""
    return round_half_up_div(stroops * price_micro, CENTS_DIVISOR)


def implied_price_micro(dest_amount: int, dest_price_micro: int, source_amount: int) -> int:
    """Micro-EUR per source unit implied by the destination leg of a trade."""
    if source_amount <= 0:
        return 0
    return (dest_amount * dest_price_micro + source_amount // 2) // source_amount


def to_price_micro(value: Decimal | str | int | float) -> int:
    """Convert an API quote (EUR per unit) to micro-EUR, half-up."""
    quote = value if isinstance(value, Decimal) else Decimal(str(value))
    return int((quote * MICRO_PER_EUR).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    euros, rest = divmod(abs(cents), CENTS_PER_EUR)
    return f"{sign}{euros},{rest:02d}"


def format_price_micro(micro: int) -> str:
    sign = "-" if micro < 0 else ""
    euros, rest = divmod(abs(micro), MICRO_PER_EUR)
    return f"{sign}{euros},{rest:06d}"
