"""
Frequency Model

Maps the three supported cadences to periods per year and months per
period. Every other component derives its rates and date steps from here.
"""

from enum import Enum
from typing import Union

from .exceptions import InvalidFrequency


class Cadence(Enum):
    """Compounding or payment cadence"""
    MONTHLY = ("monthly", 12)        # 12 periods per year
    QUARTERLY = ("quarterly", 4)     # 4 periods per year
    HALF_YEARLY = ("half-yearly", 2)  # 2 periods per year

    def __init__(self, label: str, periods: int):
        self.label = label
        self.periods = periods

    @property
    def periods_per_year(self) -> int:
        return self.periods

    @property
    def months_per_period(self) -> int:
        return 12 // self.periods

    def __str__(self) -> str:
        return self.label


_ALIASES = {
    "monthly": Cadence.MONTHLY,
    "quarterly": Cadence.QUARTERLY,
    "half-yearly": Cadence.HALF_YEARLY,
    "half_yearly": Cadence.HALF_YEARLY,
}


def parse_cadence(value: Union[Cadence, str]) -> Cadence:
    """
    Resolve a cadence from an enum member or its name

    Raises:
        InvalidFrequency: if the value names no supported cadence
    """
    if isinstance(value, Cadence):
        return value
    if isinstance(value, str):
        cadence = _ALIASES.get(value.strip().lower())
        if cadence is not None:
            return cadence
    raise InvalidFrequency(value)


def periods_per_year(value: Union[Cadence, str]) -> int:
    """Number of periods per year for a cadence"""
    return parse_cadence(value).periods_per_year
