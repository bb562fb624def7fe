"""
Value Aggregation Service.

Reduces a set of matched cart lines to one number under an aggregation basis:
- AMOUNT:   Σ unit_price × quantity
- QUANTITY: Σ quantity expressed in the target unit (UOM-aware)
- WEIGHT:   QUANTITY with a weight target unit (KG unless given)

Quantity resolution for one line, first match wins:
1. No target unit, or the line is already in it
2. The line's own conversion factors link line unit → target
3. Weight target with a known capacity: line → base unit, then × capacity
4. Any other conversion the line's factors allow
5. Unlabeled line: treat as EA and convert from there using master factors
6. Otherwise the raw quantity, with a warning
"""
import asyncio
from decimal import Decimal
from typing import Optional, Sequence

from scheme_engine.config import Settings
from scheme_engine.core.enum_utils import GRAM_UOMS, KILOGRAM_UOMS, WEIGHT_UOMS, same_uom, uom_in
from scheme_engine.core.logging import EngineLogger
from scheme_engine.core.money import ZERO
from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.scheme import AggregationBasis
from scheme_engine.services.product_data_service import ProductDataService
from scheme_engine.services.uom_service import UomService


class AggregationService:
    """Aggregates cart lines under quantity, amount or weight bases."""

    def __init__(
        self,
        logger: EngineLogger,
        uom_service: UomService,
        product_data: ProductDataService,
        settings: Settings,
    ):
        self.logger = logger
        self.uom = uom_service
        self.product_data = product_data
        self.settings = settings

    async def aggregate(
        self,
        items: Sequence[ProductItem],
        basis: Optional[AggregationBasis],
        target_uom: Optional[str] = None,
    ) -> Decimal:
        """Aggregate ``items`` under ``basis``. A missing basis means QUANTITY."""
        if basis == AggregationBasis.AMOUNT:
            return sum((item.line_value for item in items), ZERO)

        if basis == AggregationBasis.WEIGHT:
            weight_uom = target_uom or self.settings.DEFAULT_WEIGHT_UOM
            total_weight = await self.aggregate(items, AggregationBasis.QUANTITY, weight_uom)
            self.logger.log(
                f"Total weight calculated (UOM-aware) as {total_weight}{weight_uom} for {len(items)} product(s)"
            )
            return total_weight

        quantities = await asyncio.gather(
            *(self.resolve_quantity(item, target_uom) for item in items)
        )
        return sum(quantities, ZERO)

    async def resolve_quantity(self, item: ProductItem, target_uom: Optional[str]) -> Decimal:
        """Express one cart line's quantity in ``target_uom``."""
        quantity = item.quantity

        if not target_uom or same_uom(item.uom, target_uom):
            return quantity

        # 2. Line's own conversion factors
        if item.uom and item.unit_per_case:
            if self.uom.find_factor(item.uom, target_uom, item.unit_per_case) is not None:
                converted = self.uom.convert(quantity, item.uom, target_uom, item.unit_per_case)
                self.logger.log(
                    f"[Aggregation] Product {item.product_id}: Using UOM conversion factors: "
                    f"{quantity} {item.uom} = {converted.as_decimal} {target_uom}"
                )
                return converted.as_decimal

        # 3. Capacity-based weight
        if uom_in(target_uom, WEIGHT_UOMS):
            weight = await self._resolve_weight(item, target_uom)
            if weight is not None:
                return weight

        # 4. Fallback conversion
        if item.uom:
            converted = self.uom.convert(quantity, item.uom, target_uom, item.unit_per_case)
            if converted.resolved:
                self.logger.log(
                    f"[Aggregation] Product {item.product_id}: Using UOM conversion: "
                    f"{quantity} {item.uom} = {converted.as_decimal} {target_uom}"
                )
                return converted.as_decimal

        # 5. Unlabeled lines are ordered in EA
        if self._is_unlabeled(item):
            each = self.settings.EACH_UOM
            if same_uom(target_uom, each):
                self.logger.log(
                    f"[Aggregation] Product {item.product_id}: UOM was missing/N/A, "
                    f"assumed quantity {quantity} is in {each} (matches target UOM)"
                )
                return quantity

            details = await self.product_data.get_uom_details(item.product_id)
            factors = (details.unit_per_case if details else None) or item.unit_per_case
            if factors:
                converted = self.uom.convert(quantity, each, target_uom, factors)
                if converted.resolved:
                    self.logger.log(
                        f"[Aggregation] Product {item.product_id}: UOM was missing/N/A, assumed quantity "
                        f"{quantity} is in {each}, converted to {converted.as_decimal} {target_uom}"
                    )
                    return converted.as_decimal

            self.logger.log(
                f"[Aggregation] Product {item.product_id}: UOM was missing/N/A, assumed quantity "
                f"{quantity} is in {each}, using as-is (target: {target_uom})"
            )
            return quantity

        self.logger.warn(
            f"[Aggregation] Product {item.product_id}: Cannot convert from {item.uom} to {target_uom}, "
            f"using original quantity: {quantity}"
        )
        return quantity

    async def _resolve_weight(self, item: ProductItem, target_uom: str) -> Optional[Decimal]:
        """Weight via capacity per base unit, or None when no capacity is known."""
        capacity, base_uom = await self.product_data.get_capacity_and_base_uom(item.product_id)
        if capacity <= 0:
            return None

        details = await self.product_data.get_uom_details(item.product_id)
        effective_base_uom = base_uom or (details.base_uom if details else None)
        factors = item.unit_per_case or (details.unit_per_case if details else [])

        quantity_in_base = item.quantity
        if effective_base_uom and factors:
            from_uom = self.settings.EACH_UOM if self._is_unlabeled(item) else item.uom
            converted = self.uom.convert(item.quantity, from_uom, effective_base_uom, factors)
            if converted.resolved:
                quantity_in_base = converted.as_decimal
                self.logger.log(
                    f"[Aggregation] Product {item.product_id}: Converted {item.quantity} {from_uom} to "
                    f"{quantity_in_base} {effective_base_uom} (base UOM) for weight calculation"
                )
            else:
                self.logger.log(
                    f"[Aggregation] Product {item.product_id}: Could not convert from {from_uom} to "
                    f"{effective_base_uom}, falling back to raw quantity {quantity_in_base}"
                )

        if uom_in(target_uom, KILOGRAM_UOMS):
            weight = capacity * quantity_in_base
        elif uom_in(target_uom, GRAM_UOMS):
            weight = capacity * 1000 * quantity_in_base
        else:
            return None

        self.logger.log(
            f"[Aggregation] Product {item.product_id}: capacity {capacity}kg per "
            f"{effective_base_uom or 'unit'} × quantity {quantity_in_base} = {weight}{target_uom}"
        )
        return weight

    def _is_unlabeled(self, item: ProductItem) -> bool:
        return not item.uom or same_uom(item.uom, self.settings.NOT_AVAILABLE_UOM)

    async def meets_minimum(
        self,
        items: Sequence[ProductItem],
        value: Decimal,
        min_value: Decimal,
        basis: AggregationBasis,
        target_uom: Optional[str],
    ) -> bool:
        """
        ``value >= min_value``, retrying in EA when the threshold was set in
        another unit (a scheme named "24 pcs" but configured as 2 BOX).

        The EA retry converts the threshold with the first matched line's
        conversion factors and only counts when it changes the threshold.
        """
        if value >= min_value:
            return True

        if not target_uom or basis != AggregationBasis.QUANTITY or not items:
            return False

        factors = items[0].unit_per_case
        if not factors:
            return False

        each = self.settings.EACH_UOM
        value_in_each = await self.aggregate(items, AggregationBasis.QUANTITY, each)
        min_in_each = self.uom.convert(min_value, target_uom, each, factors).as_decimal

        if value_in_each > 0 and min_in_each > 0 and min_in_each != min_value:
            self.logger.log(
                f"[EA Check] Trying EA comparison: {value_in_each} {each} vs {min_in_each} {each} "
                f"(minValue {min_value} {target_uom} = {min_in_each} {each})"
            )
            if value_in_each >= min_in_each:
                self.logger.log(f"[EA Check] MinValue requirement met in {each}")
                return True
        return False
