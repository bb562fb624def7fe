"""Turns a reward definition and a base value into a reward amount."""
from decimal import Decimal
from typing import Optional

from scheme_engine.config import Settings
from scheme_engine.core.logging import EngineLogger
from scheme_engine.core.money import ZERO, floor_ratio, round_money
from scheme_engine.schemas.reward import RewardOutcome
from scheme_engine.schemas.scheme import Reward, RewardType


class RewardCalculator:
    """
    Computes reward amounts.

    Percent rewards scale by the applied quantity (the prorating multiplier)
    when one is given, otherwise by floor(base / prorated_min) when a
    prorating threshold is given. Fixed rewards scale the same way but only
    for multipliers above one. The result is rounded to two decimals and then
    capped at ``max_reward_amount``; hitting the cap exactly counts as capped.
    """

    def __init__(self, logger: EngineLogger, settings: Settings):
        self.logger = logger
        self.settings = settings

    def compute(
        self,
        reward: Reward,
        base_value: Decimal,
        applied_quantity: Optional[Decimal] = None,
        description: str = "",
        prorated_min_value: Optional[Decimal] = None,
    ) -> RewardOutcome:
        value = reward.value
        amount = ZERO

        self.logger.debug(
            f"[RewardCalculator] Reward Type: {reward.type.value}, Base Value: ₹{base_value}, "
            f"Reward Value: {value}, Applied Quantity: {applied_quantity if applied_quantity is not None else 'N/A'}, "
            f"ProratedMinValue: {prorated_min_value or 'N/A'}"
        )

        if reward.type == RewardType.DISCOUNT_PERCENT:
            effective_value = value
            if applied_quantity is not None and applied_quantity >= 1:
                effective_value = value * applied_quantity
            elif self._threshold_met(base_value, prorated_min_value):
                effective_value = value * floor_ratio(base_value, prorated_min_value)
            amount = round_money(base_value * effective_value / 100, self.settings.MONEY_QUANTUM)
            self.logger.debug(
                f"[RewardCalculator] Discount Amount = ({base_value} × {effective_value}) / 100 = ₹{amount}"
            )

        elif reward.type == RewardType.DISCOUNT_FIXED:
            if applied_quantity is not None and applied_quantity > 1:
                amount = round_money(value * applied_quantity, self.settings.MONEY_QUANTUM)
            elif self._threshold_met(base_value, prorated_min_value):
                amount = round_money(
                    value * floor_ratio(base_value, prorated_min_value), self.settings.MONEY_QUANTUM
                )
            else:
                amount = round_money(value, self.settings.MONEY_QUANTUM)

        elif reward.type in (RewardType.CASHBACK, RewardType.LOYALTY_POINTS):
            amount = value

        elif reward.type == RewardType.FREE_PRODUCT:
            amount = ZERO

        elif reward.type == RewardType.PRODUCT_DISCOUNT:
            amount = sum((p.value for p in reward.discounted_products), ZERO)

        calculated_amount = round_money(amount, self.settings.MONEY_QUANTUM)
        final_amount = calculated_amount
        is_capped = False

        cap = reward.max_reward_amount
        if cap and calculated_amount >= cap:
            final_amount = round_money(cap, self.settings.MONEY_QUANTUM)
            is_capped = True
            self.logger.debug(f"[RewardCalculator] Capped ₹{calculated_amount} at ₹{final_amount}")

        return RewardOutcome(
            amount=final_amount,
            applied_quantity=applied_quantity if applied_quantity is not None else base_value,
            discount=final_amount,
            description=description,
            is_capped=is_capped,
            max_reward_amount=cap or None,
            calculated_discount_amount=calculated_amount if is_capped else None,
        )

    @staticmethod
    def _threshold_met(base_value: Decimal, prorated_min_value: Optional[Decimal]) -> bool:
        return bool(prorated_min_value) and prorated_min_value > 0 and base_value >= prorated_min_value
