from enum import Enum


class PriceSource(str, Enum):
    COINGECKO = "coingecko"
    FRANKFURTER = "frankfurter"
    PAR = "par"
