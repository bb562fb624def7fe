"""
Condition Evaluator.

One strategy per condition shape. Each returns a RewardOutcome when the
condition is satisfied, or None when it is not (never an exception).

- combo:            every sub-criterion (ALL) or the pooled matches (ANY) meet thresholds
- assorted:         matched sub-criteria values summed against one threshold
- invoice:          cart total against [min, max], with inline prorating
- lineItem:         filtered lines, pricing-group check, ≥2 distinct products
- flexibleProduct:  filtered value and quantity bounds

Prorated conditions (other than invoice) are delegated to ProratingStrategy.
"""
from decimal import Decimal
from typing import Optional, Sequence

from scheme_engine.core.logging import EngineLogger
from scheme_engine.core.money import ZERO, floor_ratio
from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.reward import RewardOutcome
from scheme_engine.schemas.scheme import (
    ANY_PRODUCT,
    AggregationBasis,
    AssortedCondition,
    ComboCondition,
    Condition,
    ConditionBasis,
    FlexibleProductCondition,
    InvoiceCondition,
    LineItemCondition,
    MatchType,
    RewardType,
)
from scheme_engine.services.aggregation_service import AggregationService
from scheme_engine.services.product_data_service import ProductDataService
from scheme_engine.services.product_matcher import (
    filter_by_criterion,
    filter_by_id_lists,
    filter_line_items,
    matches_criterion,
)
from scheme_engine.services.prorating import ProratingStrategy
from scheme_engine.services.reward_calculator import RewardCalculator
from scheme_engine.services.validators import validate_unified_criteria


class ConditionEvaluator:
    """Evaluates a single scheme condition against the cart."""

    def __init__(
        self,
        logger: EngineLogger,
        aggregation: AggregationService,
        calculator: RewardCalculator,
        product_data: ProductDataService,
        prorating: ProratingStrategy,
    ):
        self.logger = logger
        self.aggregation = aggregation
        self.calculator = calculator
        self.product_data = product_data
        self.prorating = prorating

    async def evaluate(
        self,
        condition: Condition,
        items: Sequence[ProductItem],
        total_value: Decimal,
        total_quantity: Decimal,
        warehouse_id: Optional[str] = None,
    ) -> Optional[RewardOutcome]:
        if condition.is_pro_rated and not isinstance(condition, InvoiceCondition):
            if isinstance(condition, ComboCondition) and condition.criteria.match_type == MatchType.ALL:
                # The plain ALL check must pass before applications are counted
                if await self.evaluate_combo(condition, items) is None:
                    return None
            return await self.prorating.evaluate(condition, items, total_value)

        if isinstance(condition, ComboCondition):
            return await self.evaluate_combo(condition, items)
        if isinstance(condition, AssortedCondition):
            return await self.evaluate_assorted(condition, items)
        if isinstance(condition, InvoiceCondition):
            return self.evaluate_invoice(condition, total_value, total_quantity)
        if isinstance(condition, LineItemCondition):
            return await self.evaluate_line_item(condition, items, warehouse_id, total_value)
        if isinstance(condition, FlexibleProductCondition):
            return self.evaluate_flexible_product(condition, items)
        return None

    # ==================== COMBO ====================

    async def evaluate_combo(
        self,
        condition: ComboCondition,
        items: Sequence[ProductItem],
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria
        if not criteria.criteria:
            return None

        if criteria.match_type == MatchType.ALL:
            return await self._evaluate_combo_all(condition, items)
        return await self._evaluate_combo_any(condition, items)

    async def _evaluate_combo_all(
        self,
        condition: ComboCondition,
        items: Sequence[ProductItem],
    ) -> Optional[RewardOutcome]:
        total_qty = ZERO
        total_value = ZERO
        total_weight = ZERO

        for criterion in condition.criteria.criteria:
            if not criterion.has_identifier:
                return None

            matched = filter_by_criterion(items, criterion)
            if not matched:
                return None

            # Each criterion uses its own basis; no fallback to the top level
            basis = criterion.aggregation_basis or AggregationBasis.QUANTITY
            target_uom = criterion.uom if basis == AggregationBasis.QUANTITY else None
            value = await self.aggregation.aggregate(matched, basis, target_uom)

            if criterion.min_enforced:
                if not await self.aggregation.meets_minimum(matched, value, criterion.min_value, basis, target_uom):
                    self.logger.log(
                        f"[Combo] Criterion minValue not met: {value} < {criterion.min_value} "
                        f"(targetUom: {target_uom or 'N/A'})"
                    )
                    return None

            if criterion.max_enforced and value > criterion.max_value:
                self.logger.log(
                    f"[Combo] Criterion maxValue exceeded: {value} > {criterion.max_value} "
                    f"(targetUom: {target_uom or 'N/A'})"
                )
                return None

            if basis == AggregationBasis.QUANTITY:
                total_qty += value
            elif basis == AggregationBasis.WEIGHT:
                total_weight += value
            else:
                total_value += value

        self.logger.debug(f"[Combo] Totals qty={total_qty} value={total_value} weight={total_weight}")

        # Quantity wins when criteria mix bases; weight totals never feed the reward
        base_value = total_qty if total_qty > 0 else total_value
        return self.calculator.compute(
            condition.reward, base_value, None, f"Combo condition met with {len(items)} products"
        )

    async def _evaluate_combo_any(
        self,
        condition: ComboCondition,
        items: Sequence[ProductItem],
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria
        pooled = [
            item for item in items
            if any(matches_criterion(item, c) for c in criteria.criteria)
        ]
        if not pooled:
            return None

        basis = criteria.aggregation_basis or AggregationBasis.QUANTITY
        total_qty = await self.aggregation.aggregate(pooled, basis)
        total_value = ZERO
        if basis in (AggregationBasis.AMOUNT, AggregationBasis.WEIGHT):
            total_value = total_qty
            total_qty = ZERO

        check_value = total_qty if basis == AggregationBasis.QUANTITY else total_value
        if criteria.min_value is not None and check_value < criteria.min_value:
            return None
        if criteria.max_value is not None and check_value > criteria.max_value:
            return None

        return self.calculator.compute(
            condition.reward, check_value, None, f"Combo condition met with {len(items)} products"
        )

    # ==================== ASSORTED ====================

    async def evaluate_assorted(
        self,
        condition: AssortedCondition,
        items: Sequence[ProductItem],
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria

        if not criteria.criteria:
            return await self._evaluate_assorted_flat(condition, items)

        self.logger.log(
            f"[Assorted] Evaluating assorted condition with {len(criteria.criteria)} criteria. "
            f"Top-level UOM: {criteria.uom or 'N/A'}, MinValue: {criteria.min_value}, MaxValue: {criteria.max_value}"
        )

        total = ZERO
        for index, criterion in enumerate(criteria.criteria, start=1):
            matched = filter_by_criterion(items, criterion)
            if not matched:
                # Either product alone may satisfy the scheme
                self.logger.log(f"[Assorted] Criterion {index} has no matching products - skipping this criterion")
                continue

            basis = criterion.aggregation_basis or criteria.aggregation_basis or AggregationBasis.QUANTITY
            # Top-level unit wins so a KG threshold converts bags through capacity
            target_uom = (criteria.uom or criterion.uom) if basis == AggregationBasis.QUANTITY else None
            value = await self.aggregation.aggregate(matched, basis, target_uom)

            # Per-criterion bounds are informational only; the total is what counts
            if criterion.min_enforced and value < criterion.min_value:
                self.logger.log(
                    f"[Assorted] Criterion {index}: Value {value} < Individual MinValue {criterion.min_value} "
                    f"(informational, still including in total)"
                )
            if criterion.max_enforced and value > criterion.max_value:
                self.logger.log(
                    f"[Assorted] Criterion {index}: Value {value} > Individual MaxValue {criterion.max_value} "
                    f"(informational, still including in total)"
                )

            total += value
            self.logger.log(f"[Assorted] Criterion {index}: Added {value} ({target_uom or basis.value}). Running total = {total}")

        if total == 0:
            self.logger.log("[Assorted] FAILED: No matching products found for any criterion")
            return None
        if criteria.min_value is not None and total < criteria.min_value:
            self.logger.log(f"[Assorted] FAILED: Total value {total} < MinValue {criteria.min_value}")
            return None
        if criteria.max_value is not None and total > criteria.max_value:
            self.logger.log(f"[Assorted] FAILED: Total value {total} > MaxValue {criteria.max_value}")
            return None

        return self.calculator.compute(
            condition.reward, total, None, f"Assorted condition met with value {total}"
        )

    async def _evaluate_assorted_flat(
        self,
        condition: AssortedCondition,
        items: Sequence[ProductItem],
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria
        matched = filter_by_id_lists(
            items, criteria.product_ids, criteria.brand_ids, criteria.category_ids, criteria.subcategory_ids
        )
        if not matched:
            return None

        value = await self.aggregation.aggregate(matched, criteria.aggregation_basis or AggregationBasis.QUANTITY)
        if criteria.min_value is not None and value < criteria.min_value:
            return None
        if criteria.max_value is not None and value > criteria.max_value:
            return None

        return self.calculator.compute(
            condition.reward, value, None, f"Assorted condition met with value {value}"
        )

    # ==================== INVOICE ====================

    def evaluate_invoice(
        self,
        condition: InvoiceCondition,
        total_value: Decimal,
        total_quantity: Decimal,
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria
        check_value = total_value if criteria.condition_basis == ConditionBasis.AMOUNT else total_quantity

        if criteria.min_value is not None and check_value < criteria.min_value:
            return None
        if criteria.max_value and check_value > criteria.max_value:
            return None

        applied_quantity = Decimal("1")
        prorated_min = None
        if condition.is_pro_rated and criteria.min_value and criteria.min_value > 0:
            applied_quantity = floor_ratio(check_value, criteria.min_value)
            prorated_min = criteria.min_value

        return self.calculator.compute(
            condition.reward,
            check_value,
            applied_quantity,
            f"Invoice condition met with {criteria.condition_basis.value} {check_value}",
            prorated_min,
        )

    # ==================== LINE ITEM ====================

    async def evaluate_line_item(
        self,
        condition: LineItemCondition,
        items: Sequence[ProductItem],
        warehouse_id: Optional[str],
        total_value: Decimal,
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria
        basis = criteria.aggregation_basis or AggregationBasis.QUANTITY

        self.logger.log(
            f"[LineItem] Evaluating line item condition: minLineTotal={criteria.min_line_total}, "
            f"uom={criteria.uom or 'N/A'}, products count={len(items)}"
        )

        applicable = filter_line_items(items, criteria.filter_by)
        self.logger.log(f"[LineItem] After filters: {len(applicable)} applicable products")

        if warehouse_id:
            mapping = await self.product_data.check_pricing_group_mapping(applicable, warehouse_id)
            if not mapping.is_valid:
                self.logger.log(
                    f"[LineItem] FAILED: Products not mapped to pricing group for warehouse {warehouse_id}. "
                    f"Unmapped products: {', '.join(mapping.unmapped_products)}"
                )
                return None

        if basis == AggregationBasis.AMOUNT:
            line_total = await self.aggregation.aggregate(applicable, AggregationBasis.AMOUNT)
        elif basis == AggregationBasis.WEIGHT:
            line_total = await self.aggregation.aggregate(applicable, AggregationBasis.WEIGHT, criteria.uom)
        elif criteria.uom:
            line_total = await self.aggregation.aggregate(applicable, AggregationBasis.QUANTITY, criteria.uom)
        else:
            # Without a unit, the quantity basis counts line items
            line_total = Decimal(len(applicable))

        self.logger.log(
            f"[LineItem] lineTotal={line_total}, minLineTotal={criteria.min_line_total}, aggregationBasis={basis.value}"
        )
        if line_total < criteria.min_line_total:
            self.logger.log(f"[LineItem] FAILED: lineTotal {line_total} < minLineTotal {criteria.min_line_total}")
            return None

        if criteria.criteria:
            validation = validate_unified_criteria(criteria.criteria, applicable)
            if not validation.is_valid:
                self.logger.log(f"[LineItem] FAILED: Unified criteria validation failed: {validation.reason}")
                return None

        unique_products = list(dict.fromkeys(item.product_id for item in applicable))
        if len(unique_products) < 2:
            self.logger.log(
                f"[LineItem] FAILED: Only {len(unique_products)} unique products found, "
                f"but scheme requires multiple line items"
            )
            return None

        if condition.reward.type == RewardType.DISCOUNT_PERCENT:
            base_value = total_value or line_total
        else:
            base_value = line_total

        self.logger.log(f"[LineItem] SUCCESS: All conditions met. Calculating reward with baseValue={base_value}")
        return self.calculator.compute(
            condition.reward, base_value, None, f"Line item condition met with total {line_total}"
        )

    # ==================== FLEXIBLE PRODUCT ====================

    def evaluate_flexible_product(
        self,
        condition: FlexibleProductCondition,
        items: Sequence[ProductItem],
    ) -> Optional[RewardOutcome]:
        criteria = condition.criteria

        if criteria.allow_any_product:
            matched = list(items)
        else:
            matched = filter_by_id_lists(
                items, criteria.product_ids, criteria.brand_ids, criteria.category_ids, criteria.subcategory_ids
            )
        if not matched:
            return None

        value = sum((item.line_value for item in matched), ZERO)
        quantity = sum((item.quantity for item in matched), ZERO)

        if criteria.min_value is not None and value < criteria.min_value:
            return None
        if criteria.max_value and value > criteria.max_value:
            return None
        if criteria.min_qty and quantity < criteria.min_qty:
            return None
        if criteria.max_qty and quantity > criteria.max_qty:
            return None

        if criteria.allow_any_product:
            matched_description = ANY_PRODUCT
        else:
            matched_description = f"products matching criteria ({len(matched)} products)"

        return self.calculator.compute(
            condition.reward,
            value,
            None,
            f"Flexible product condition met with {matched_description}, value: {value}",
        )
