"""
Prorating Strategy.

Scales a reward by how many times a condition's thresholds are met.

Combo with matchType ALL:
    applications per criterion = floor(value / criterion min); the scheme
    multiplier is the minimum across criteria, and the reward is computed on
    the whole invoice value with that multiplier.

Everything else:
    each matched sub-criterion earns floor(value / 100) applications (or the
    raw ratio when half applications are allowed), at least one per
    satisfied criterion, capped at maxApplications.
"""
from decimal import Decimal
from typing import List, Optional, Sequence

from scheme_engine.config import Settings
from scheme_engine.core.logging import EngineLogger
from scheme_engine.core.money import ZERO, floor_ratio
from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.reward import RewardOutcome
from scheme_engine.schemas.scheme import (
    AggregationBasis,
    ComboCondition,
    Condition,
    MatchType,
    RewardType,
)
from scheme_engine.services.aggregation_service import AggregationService
from scheme_engine.services.product_matcher import filter_by_criterion, filter_by_first_identifier
from scheme_engine.services.reward_calculator import RewardCalculator


class ProratingStrategy:
    """Computes prorated rewards for non-invoice conditions."""

    def __init__(
        self,
        logger: EngineLogger,
        aggregation: AggregationService,
        calculator: RewardCalculator,
        settings: Settings,
    ):
        self.logger = logger
        self.aggregation = aggregation
        self.calculator = calculator
        self.settings = settings

    async def evaluate(
        self,
        condition: Condition,
        items: Sequence[ProductItem],
        total_cart_value: Decimal,
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria
        sub_criteria = getattr(criteria, "criteria", [])

        if (
            isinstance(condition, ComboCondition)
            and criteria.match_type == MatchType.ALL
            and sub_criteria
        ):
            return await self._evaluate_combo_all(condition, items)

        return await self._evaluate_generic(condition, items, total_cart_value)

    # ==================== COMBO (ALL) ====================

    async def _evaluate_combo_all(
        self,
        condition: ComboCondition,
        items: Sequence[ProductItem],
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria
        invoice_value = sum((item.line_value for item in items), ZERO)
        self.logger.log(f"[Prorated Combo] Total Invoice Value: ₹{invoice_value}")

        applications: List[Decimal] = []
        for index, criterion in enumerate(criteria.criteria, start=1):
            if not criterion.has_identifier:
                self.logger.log(f"[Prorated Combo] Criterion {index}: No identifier found - REJECTING")
                return None

            matched = filter_by_criterion(items, criterion)
            if not matched:
                # Partial fulfillment: unmatched criteria don't reject
                self.logger.log(f"[Prorated Combo] Criterion {index}: No products match - SKIPPING")
                continue

            basis = criterion.aggregation_basis or criteria.aggregation_basis or AggregationBasis.QUANTITY
            target_uom = criterion.uom if basis == AggregationBasis.QUANTITY else None
            value = await self.aggregation.aggregate(matched, basis, target_uom)

            if criterion.min_enforced:
                if not await self.aggregation.meets_minimum(matched, value, criterion.min_value, basis, target_uom):
                    self.logger.log(
                        f"[Prorated Combo] Criterion {index}: Value {value} < MinValue {criterion.min_value} - SKIPPING"
                    )
                    continue

            if criterion.max_enforced and value > criterion.max_value:
                self.logger.log(
                    f"[Prorated Combo] Criterion {index}: Value {value} > MaxValue {criterion.max_value} - REJECTING"
                )
                return None

            if criterion.min_enforced and criterion.min_value > 0:
                count = floor_ratio(value, criterion.min_value)
                self.logger.log(
                    f"[Prorated Combo] Criterion {index}: Applications = floor({value} / {criterion.min_value}) = {count}"
                )
                if count > 0:
                    applications.append(count)

        if not applications:
            self.logger.log("[Prorated Combo] No criteria met minimum requirements - REJECTING")
            return None

        multiplier = min(applications)
        self.logger.log(
            f"[Prorated Combo] Applications {[str(a) for a in applications]}, using minimum {multiplier}"
        )
        return self.calculator.compute(
            condition.reward,
            invoice_value,
            multiplier,
            f"Prorated combo condition met with {multiplier} applications",
        )

    # ==================== GENERIC ====================

    async def _evaluate_generic(
        self,
        condition: Condition,
        items: Sequence[ProductItem],
        total_cart_value: Decimal,
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria
        top_basis = getattr(criteria, "aggregation_basis", None)
        top_min = getattr(criteria, "min_value", None)
        max_applications = getattr(criteria, "max_applications", None) or condition.reward.max_applications
        unit_value = self.settings.PRORATE_UNIT_VALUE

        total_applications = ZERO
        total_group_value = ZERO

        for criterion in getattr(criteria, "criteria", []):
            group = filter_by_first_identifier(items, criterion)
            if not group:
                continue

            basis = criterion.aggregation_basis or top_basis or AggregationBasis.QUANTITY
            target_uom = criterion.uom if basis == AggregationBasis.QUANTITY else None
            group_value = await self.aggregation.aggregate(group, basis, target_uom)

            if group_value < (criterion.min_value or top_min or Decimal("1")):
                continue
            if criterion.max_value and group_value > criterion.max_value:
                continue

            if condition.is_available_for_half:
                count = group_value / unit_value
            else:
                count = floor_ratio(group_value, unit_value)

            total_applications += max(Decimal("1"), count)
            total_group_value += group_value

        final_applications = total_applications
        if max_applications:
            final_applications = min(total_applications, max_applications)

        if final_applications == 0:
            return None

        if condition.reward.type == RewardType.DISCOUNT_PERCENT:
            base_value = total_cart_value if total_cart_value is not None else total_group_value
        else:
            base_value = final_applications

        return self.calculator.compute(
            condition.reward,
            base_value,
            final_applications,
            f"Prorated condition met with {final_applications} applications",
        )
