from enum import Enum


class Direction(str, Enum):
    """Side of a payment as seen from the wallet."""

    IN = "in"
    OUT = "out"
