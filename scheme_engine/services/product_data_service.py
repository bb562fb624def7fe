"""
Product Data Service.

Wraps the caller's optional product master lookups:
- capacity in kg per base unit (weight aggregation)
- base UOM and conversion factors
- pricing group membership and pricing group → warehouse mapping

Every lookup fails open: a missing callable or a raised exception is logged
and replaced by a safe default (capacity 0, no UOM details, mapping valid).
"""
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from scheme_engine.core.logging import EngineLogger
from scheme_engine.core.money import ZERO, to_decimal
from scheme_engine.schemas.product import (
    PricingGroup,
    PricingGroupProduct,
    ProductItem,
    UomDetails,
)


@dataclass
class ProductDataProvider:
    """Async product master lookups supplied by the caller. Any may be omitted."""
    get_product_capacity_in_kg: Optional[Callable[[str], Awaitable[Any]]] = None
    get_product_uom_details: Optional[Callable[[str], Awaitable[Any]]] = None
    get_pricing_group_products: Optional[Callable[[List[str]], Awaitable[List[Any]]]] = None
    get_pricing_groups: Optional[Callable[[List[str]], Awaitable[List[Any]]]] = None


@dataclass
class PricingGroupCheck:
    is_valid: bool
    unmapped_products: List[str] = field(default_factory=list)


class ProductDataService:
    """Fail-open access to product master data."""

    def __init__(self, logger: EngineLogger, provider: Optional[ProductDataProvider] = None):
        self.logger = logger
        self.provider = provider

    async def _timed(self, label: str, func: Callable[..., Awaitable[Any]], *args) -> Any:
        started = time.perf_counter()
        result = await func(*args)
        self.logger.debug(f"{label} took {(time.perf_counter() - started) * 1000:.2f}ms")
        return result

    # ==================== UOM & CAPACITY ====================

    async def get_capacity_and_base_uom(self, product_id: str) -> Tuple[Decimal, Optional[str]]:
        """Capacity in kg per base unit, plus the base unit when known."""
        provider = self.provider
        if provider is None or provider.get_product_capacity_in_kg is None:
            self.logger.warn(
                f"Product {product_id}: No productDataProvider.getProductCapacityInKg available, "
                f"using 0 for weight calculation"
            )
            return ZERO, None

        try:
            capacity = to_decimal(
                await self._timed(
                    f"getProductCapacityInKg({product_id})",
                    provider.get_product_capacity_in_kg,
                    product_id,
                )
            )

            base_uom = None
            if provider.get_product_uom_details is not None:
                raw = await self._timed(
                    f"getProductUomDetails({product_id})",
                    provider.get_product_uom_details,
                    product_id,
                )
                details = self._parse_uom_details(raw)
                base_uom = details.base_uom if details else None

            if capacity > 0:
                self.logger.log(f"Product {product_id}: capacity={capacity}kg, baseUOM={base_uom or 'N/A'}")
            return capacity, base_uom
        except Exception as e:
            self.logger.error(f"Error fetching product {product_id} for weight calculation: {e}")
            return ZERO, None

    async def get_uom_details(self, product_id: str) -> Optional[UomDetails]:
        """Base UOM and conversion factors from the product master, or None."""
        provider = self.provider
        try:
            if provider is not None and provider.get_product_uom_details is not None:
                raw = await self._timed(
                    f"getProductUomDetails({product_id})",
                    provider.get_product_uom_details,
                    product_id,
                )
                details = self._parse_uom_details(raw)
                if details is not None:
                    self.logger.log(
                        f"Product {product_id}: baseUOM={details.base_uom or 'N/A'}, "
                        f"unitPerCase={len(details.unit_per_case)} factor(s)"
                    )
                    return details

            self.logger.warn(f"Product {product_id}: No productDataProvider.getProductUomDetails available")
            return None
        except Exception as e:
            self.logger.error(f"Error fetching product {product_id} for UOM details: {e}")
            return None

    @staticmethod
    def _parse_uom_details(raw: Any) -> Optional[UomDetails]:
        if raw is None:
            return None
        if isinstance(raw, UomDetails):
            return raw
        return UomDetails.model_validate(raw)

    # ==================== PRICING GROUPS ====================

    async def check_pricing_group_mapping(
        self,
        items: Sequence[ProductItem],
        warehouse_id: str,
    ) -> PricingGroupCheck:
        """
        Verify every product is in a pricing group mapped to the warehouse.

        Without the two pricing-group lookups the check passes. A lookup that
        returns no rows fails the check. A lookup that raises passes it.
        """
        product_ids = list(dict.fromkeys(item.product_id for item in items))
        if not product_ids:
            return PricingGroupCheck(True)

        provider = self.provider
        if provider is None or provider.get_pricing_group_products is None or provider.get_pricing_groups is None:
            self.logger.warn("No productDataProvider for pricing group mapping, skipping validation")
            return PricingGroupCheck(True)

        try:
            raw_members = await self._timed(
                f"getPricingGroupProducts({len(product_ids)} products)",
                provider.get_pricing_group_products,
                product_ids,
            )
            members = [
                m if isinstance(m, PricingGroupProduct) else PricingGroupProduct.model_validate(m)
                for m in raw_members or []
            ]
            if not members:
                return PricingGroupCheck(False, product_ids)

            group_ids = list(dict.fromkeys(m.group_id for m in members))

            raw_groups = await self._timed(
                f"getPricingGroups({len(group_ids)} groups)",
                provider.get_pricing_groups,
                group_ids,
            )
            groups = [
                g if isinstance(g, PricingGroup) else PricingGroup.model_validate(g)
                for g in raw_groups or []
            ]
            if not groups:
                return PricingGroupCheck(False, product_ids)

            warehouse_mapped = any(
                w.warehouse_id == warehouse_id
                for group in groups
                for w in group.warehouse
            )
            if not warehouse_mapped:
                return PricingGroupCheck(False, product_ids)

            mapped = {m.product_id for m in members}
            unmapped = [pid for pid in product_ids if pid not in mapped]
            return PricingGroupCheck(not unmapped, unmapped)
        except Exception as e:
            self.logger.error(f"Error checking pricing group mapping: {e}")
            return PricingGroupCheck(True)
