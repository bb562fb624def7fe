"""Records which cart quantities each satisfied condition of a scheme consumed."""
from decimal import Decimal
from typing import Dict, List, Sequence

from scheme_engine.core.money import ZERO
from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.scheme import (
    AssortedCondition,
    ComboCondition,
    Condition,
    FlexibleProductCondition,
    InvoiceCondition,
    LineItemCondition,
)
from scheme_engine.services.product_matcher import (
    filter_by_criterion,
    filter_by_id_lists,
    filter_line_items,
)

UsageMap = Dict[str, Decimal]


class UsageTracker:
    """
    Accumulates product_id → consumed quantity for one scheme evaluation.

    The map is owned by the caller: ``track`` never mutates its input and
    returns the updated copy. Invoice conditions consume nothing because they
    act on cart totals.
    """

    def track(self, condition: Condition, items: Sequence[ProductItem], used: UsageMap) -> UsageMap:
        consumed = self.matched_items(condition, items)
        updated = dict(used)
        for item in consumed:
            updated[item.product_id] = updated.get(item.product_id, ZERO) + item.quantity
        return updated

    def matched_items(self, condition: Condition, items: Sequence[ProductItem]) -> List[ProductItem]:
        """Cart lines a satisfied condition claims."""
        if isinstance(condition, InvoiceCondition):
            return []

        if isinstance(condition, ComboCondition):
            # A line matching several sub-criteria is claimed once per criterion
            matched = []
            for criterion in condition.criteria.criteria:
                matched.extend(filter_by_criterion(items, criterion))
            return matched

        if isinstance(condition, AssortedCondition):
            c = condition.criteria
            return filter_by_id_lists(items, c.product_ids, c.brand_ids, c.category_ids, c.subcategory_ids)

        if isinstance(condition, LineItemCondition):
            return filter_line_items(items, condition.criteria.filter_by)

        if isinstance(condition, FlexibleProductCondition):
            c = condition.criteria
            if c.allow_any_product:
                return list(items)
            return filter_by_id_lists(items, c.product_ids, c.brand_ids, c.category_ids, c.subcategory_ids)

        return list(items)
