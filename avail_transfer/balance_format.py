"""
Balance Formatter

Converts between major display units and planck for one chain. Each
transaction manager owns its own formatter, built from the decimals and
token symbol the connected chain reports.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Union

from .errors import InvalidAmountError


# Substrate Balance type is u128
MAX_BALANCE = 2 ** 128 - 1

# Enough digits for any u128 at any sane decimal count
_PRECISION = 80


@dataclass(frozen=True)
class BalanceFormatter:
    """Decimal scale and unit for a single chain"""
    decimals: int
    unit: str
    display_decimals: int = 4

    def __post_init__(self):
        if self.decimals < 0:
            raise ValueError(f"Chain decimals must not be negative: {self.decimals}")

    def to_planck(self, amount: Union[Decimal, int, float, str]) -> int:
        """
        Scale a major-unit amount to planck

        Args:
            amount: Human amount, e.g. 1.5 for 1.5 AVAIL

        Returns:
            Integer planck amount

        Raises:
            InvalidAmountError: not a finite non-negative number, more
                fractional digits than the chain supports, or above u128
        """
        if isinstance(amount, bool):
            raise InvalidAmountError(f"Invalid amount: {amount!r}")

        with localcontext() as ctx:
            ctx.prec = _PRECISION
            try:
                # str() first so 0.1 stays 0.1 instead of its binary expansion
                value = Decimal(str(amount).strip())
            except (InvalidOperation, ValueError) as e:
                raise InvalidAmountError(f"Invalid amount: {amount!r}") from e

            if not value.is_finite():
                raise InvalidAmountError(f"Amount must be finite: {amount!r}")
            if value < 0:
                raise InvalidAmountError(f"Amount must not be negative: {amount!r}")

            scaled = value.scaleb(self.decimals)
            if scaled != scaled.to_integral_value():
                raise InvalidAmountError(
                    f"Amount {amount} has more than {self.decimals} decimal places"
                )
            planck = int(scaled)

        if planck > MAX_BALANCE:
            raise InvalidAmountError(f"Amount {amount} overflows the chain balance type")
        return planck

    def to_major(self, planck: int) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            return Decimal(int(planck)).scaleb(-self.decimals)

    def format(self, planck: int, with_unit: bool = False) -> str:
        """Render planck as a major-unit string, truncated to display_decimals"""
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            quantum = Decimal(1).scaleb(-self.display_decimals)
            text = f"{self.to_major(planck).quantize(quantum, rounding=ROUND_DOWN):f}"
        return f"{text} {self.unit}" if with_unit else text
