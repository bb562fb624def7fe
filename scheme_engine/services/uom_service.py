"""Unit-of-measure conversion using per-product conversion factor tables."""
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Optional, Sequence, Union

from scheme_engine.core.enum_utils import normalize_to_uppercase, same_uom
from scheme_engine.core.logging import EngineLogger
from scheme_engine.schemas.product import UnitPerCase


@dataclass(frozen=True)
class ConversionResult:
    """Converted quantity plus whether a conversion path existed.

    ``quantity`` is exact; feeding it back through ``convert`` returns the
    starting value. Use ``as_decimal`` where it meets money or thresholds.
    """
    quantity: Fraction
    resolved: bool

    @property
    def as_decimal(self) -> Decimal:
        return Decimal(self.quantity.numerator) / Decimal(self.quantity.denominator)


class UomService:
    """
    Converts quantities between two unit labels.

    A factor {numerator: n, buom: B, denominator: d, auom: A} means n B ≡ d A:
    - B → A multiplies by d/n
    - A → B multiplies by n/d

    Labels compare case-insensitively. When no factor links the two units the
    original quantity is returned unresolved and a warning is logged.
    """

    def __init__(self, logger: EngineLogger):
        self.logger = logger

    @staticmethod
    def find_factor(
        from_uom: Optional[str],
        to_uom: Optional[str],
        unit_per_case: Optional[Sequence[UnitPerCase]],
    ) -> Optional[UnitPerCase]:
        """Find a factor linking the two units in either direction."""
        if not from_uom or not to_uom or not unit_per_case:
            return None
        for factor in unit_per_case:
            if same_uom(factor.buom, from_uom) and same_uom(factor.auom, to_uom):
                return factor
            if same_uom(factor.auom, from_uom) and same_uom(factor.buom, to_uom):
                return factor
        return None

    def convert(
        self,
        quantity: Union[Decimal, Fraction],
        from_uom: Optional[str],
        to_uom: Optional[str],
        unit_per_case: Optional[Sequence[UnitPerCase]] = None,
    ) -> ConversionResult:
        """
        Convert ``quantity`` from ``from_uom`` to ``to_uom``.

        Same unit, or a missing label on either side, returns the quantity
        unchanged and resolved.
        """
        exact = Fraction(quantity)
        if not from_uom or not to_uom or same_uom(from_uom, to_uom):
            return ConversionResult(exact, True)

        if not unit_per_case:
            self.logger.warn(
                f"No UOM conversion factors available. Cannot convert from {from_uom} to {to_uom}. "
                f"Using original quantity."
            )
            return ConversionResult(exact, False)

        factor = self.find_factor(from_uom, to_uom, unit_per_case)
        if factor is None:
            self.logger.warn(f"No conversion factor found from {from_uom} to {to_uom}. Using original quantity.")
            return ConversionResult(exact, False)

        if factor.numerator == 0 or factor.denominator == 0:
            self.logger.warn(
                f"Conversion factor {factor.numerator} {factor.buom} = {factor.denominator} {factor.auom} "
                f"has a zero side. Using original quantity."
            )
            return ConversionResult(exact, False)

        numerator = Fraction(factor.numerator)
        denominator = Fraction(factor.denominator)
        if same_uom(factor.buom, from_uom):
            converted = exact * denominator / numerator
        else:
            converted = exact * numerator / denominator

        self.logger.debug(
            f"Converted {quantity} {normalize_to_uppercase(from_uom)} to {float(converted):g} {normalize_to_uppercase(to_uom)}"
        )
        return ConversionResult(converted, True)
