"""
Scheme Processor.

Checks whether a scheme applies to the billing context and cart, then turns
each satisfied condition into a CalculatedReward row:
- free products scaled by the prorating multiplier
- product discounts priced against the cart
- effective discount percentage for display
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from scheme_engine.config import Settings
from scheme_engine.core.logging import EngineLogger
from scheme_engine.core.money import ZERO, round_money
from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.reward import (
    CalculatedReward,
    CalculationContext,
    DiscountedProductResult,
    RewardOutcome,
)
from scheme_engine.schemas.scheme import (
    Condition,
    ProductDiscountReward,
    RewardType,
    Scheme,
)
from scheme_engine.services.condition_evaluator import ConditionEvaluator
from scheme_engine.services.usage_tracker import UsageMap, UsageTracker


@dataclass
class SchemeRewards:
    """Rewards produced by one scheme plus the quantities its conditions claimed."""
    rewards: List[CalculatedReward] = field(default_factory=list)
    usage: UsageMap = field(default_factory=dict)

    @property
    def total_reward(self) -> Decimal:
        return sum((r.reward_amount for r in self.rewards), ZERO)


class SchemeProcessor:
    """Applicability checks and per-condition reward assembly for one scheme."""

    def __init__(
        self,
        logger: EngineLogger,
        evaluator: ConditionEvaluator,
        tracker: UsageTracker,
        settings: Settings,
    ):
        self.logger = logger
        self.evaluator = evaluator
        self.tracker = tracker
        self.settings = settings

    # ==================== APPLICABILITY ====================

    def is_applicable(
        self,
        scheme: Scheme,
        items: Sequence[ProductItem],
        context: CalculationContext,
    ) -> bool:
        """
        Context lists are OR-ed: when any is set, at least one must match.
        Each non-empty product-side list needs at least one cart line in it.
        """
        applicable_to = scheme.applicable_to
        if applicable_to is None:
            self.logger.error(f"Scheme {scheme.scheme_id} is missing applicableTo property")
            return False

        if (
            applicable_to.warehouse_ids
            or applicable_to.channel_ids
            or applicable_to.business_type_ids
            or applicable_to.outlet_ids
        ):
            context_matches = (
                context.warehouse_id in applicable_to.warehouse_ids
                or context.channel_id in applicable_to.channel_ids
                or context.business_type_id in applicable_to.business_type_ids
                or (context.outlet_id is not None and context.outlet_id in applicable_to.outlet_ids)
            )
            if not context_matches:
                return False

        if applicable_to.product_ids:
            if not any(item.product_id in applicable_to.product_ids for item in items):
                return False
        if applicable_to.brand_ids:
            if not any(item.brand_id and item.brand_id in applicable_to.brand_ids for item in items):
                return False
        if applicable_to.category_ids:
            if not any(item.category_id and item.category_id in applicable_to.category_ids for item in items):
                return False
        if applicable_to.subcategory_ids:
            if not any(
                item.subcategory_id and item.subcategory_id in applicable_to.subcategory_ids for item in items
            ):
                return False

        return True

    # ==================== CONDITIONS ====================

    async def process(
        self,
        scheme: Scheme,
        items: Sequence[ProductItem],
        context: CalculationContext,
    ) -> SchemeRewards:
        """Evaluate every condition in declared order. Inapplicable schemes yield nothing."""
        result = SchemeRewards()

        self.logger.log(f"[ProcessScheme] Evaluating scheme: {scheme.scheme_id} ({scheme.scheme_name})")
        if not self.is_applicable(scheme, items, context):
            self.logger.log(f"[ProcessScheme] Scheme {scheme.scheme_id} is not applicable to current context")
            return result

        total_value = sum((item.line_value for item in items), ZERO)
        total_quantity = sum((item.quantity for item in items), ZERO)

        for condition in scheme.conditions:
            outcome = await self.evaluator.evaluate(
                condition, items, total_value, total_quantity, context.warehouse_id
            )
            if outcome is None:
                continue

            result.usage = self.tracker.track(condition, items, result.usage)
            result.rewards.append(
                self._build_reward(scheme, condition, outcome, items, total_value)
            )

        if result.usage:
            self.logger.debug(
                f"[ProcessScheme] Scheme {scheme.scheme_id} consumed "
                + ", ".join(f"{pid}={qty}" for pid, qty in result.usage.items())
            )
        return result

    def _build_reward(
        self,
        scheme: Scheme,
        condition: Condition,
        outcome: RewardOutcome,
        items: Sequence[ProductItem],
        total_value: Decimal,
    ) -> CalculatedReward:
        reward = condition.reward

        free_products = list(reward.products)
        if reward.type == RewardType.FREE_PRODUCT and condition.is_pro_rated:
            free_products = [
                p.model_copy(update={"quantity": p.quantity * outcome.applied_quantity})
                for p in free_products
            ]

        discounted_products: List[DiscountedProductResult] = []
        amount = outcome.amount
        discount = outcome.discount
        if reward.type == RewardType.PRODUCT_DISCOUNT and reward.discounted_products:
            multiplier = outcome.applied_quantity if condition.is_pro_rated else Decimal("1")
            discounted_products = [
                self._price_discounted_product(dp, items, multiplier, condition.is_pro_rated)
                for dp in reward.discounted_products
            ]
            amount = round_money(
                sum((p.discount_amount for p in discounted_products), ZERO), self.settings.MONEY_QUANTUM
            )
            discount = amount
            self.logger.log(f"[ProductDiscount Total] Total discount calculated: ₹{amount}")

        discount_percentage: Optional[Decimal] = None
        if reward.type == RewardType.DISCOUNT_PERCENT:
            if condition.is_pro_rated and outcome.applied_quantity > 1:
                discount_percentage = round_money(reward.value * outcome.applied_quantity, self.settings.MONEY_QUANTUM)
            else:
                discount_percentage = round_money(reward.value, self.settings.MONEY_QUANTUM)
        elif reward.type == RewardType.DISCOUNT_FIXED and total_value > 0:
            discount_percentage = round_money(amount / total_value * 100, self.settings.MONEY_QUANTUM)

        return CalculatedReward(
            scheme_id=scheme.scheme_id,
            scheme_name=scheme.scheme_name,
            condition_type=condition.kind,
            priority=condition.priority,
            reward_type=reward.type,
            reward_value=reward.value,
            reward_amount=amount,
            free_products=free_products,
            discounted_products=discounted_products or None,
            applied_quantity=outcome.applied_quantity,
            total_discount=discount,
            description=outcome.description,
            discount_percentage=discount_percentage,
            is_capped=outcome.is_capped,
            max_reward_amount=outcome.max_reward_amount,
            calculated_discount_amount=outcome.calculated_discount_amount,
        )

    def _price_discounted_product(
        self,
        discounted: ProductDiscountReward,
        items: Sequence[ProductItem],
        multiplier: Decimal,
        is_pro_rated: bool,
    ) -> DiscountedProductResult:
        """Price one product discount line; the configured quantity always applies."""
        in_cart = next((item for item in items if item.product_id == discounted.product_id), None)
        unit_price = in_cart.unit_price if in_cart is not None and in_cart.unit_price else ZERO
        if not unit_price:
            self.logger.warn(
                f"Product {discounted.product_id} not found in products or has no price, using default price 0"
            )

        quantity = discounted.quantity or Decimal("1")
        total_price = unit_price * quantity
        effective_value = discounted.value * multiplier if is_pro_rated else discounted.value

        if discounted.type == RewardType.DISCOUNT_PERCENT:
            discount = total_price * effective_value / 100
        elif discounted.type == RewardType.DISCOUNT_FIXED:
            discount = effective_value * quantity
        else:
            discount = ZERO

        if discounted.max_discount_amount and discount > discounted.max_discount_amount:
            discount = discounted.max_discount_amount

        discount = round_money(discount, self.settings.MONEY_QUANTUM)
        self.logger.log(
            f"[ProductDiscount] Product: {discounted.product_id}, Price: ₹{unit_price}, Quantity: {quantity}, "
            f"Type: {discounted.type.value}, Value: {discounted.value}, EffectiveValue: {effective_value}, "
            f"Discount: ₹{discount}"
        )

        return DiscountedProductResult(
            product_id=discounted.product_id,
            quantity=quantity,
            type=discounted.type,
            value=effective_value,
            max_discount_amount=discounted.max_discount_amount,
            unit_price=unit_price,
            total_price=total_price,
            discount_amount=discount,
            final_price=total_price - discount,
        )
