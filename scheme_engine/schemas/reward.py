"""Pydantic schemas for calculation requests, intermediate outcomes and results."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from scheme_engine.schemas.base import BaseInputSchema, BaseResultSchema
from scheme_engine.schemas.scheme import (
    ConditionType,
    FreeProductReward,
    RewardType,
    SchemeAppliedStatus,
)


# ==================== Request Schemas ====================

class CalculationContext(BaseInputSchema):
    """Where the cart is being billed."""
    warehouse_id: str
    channel_id: str = ""
    business_type_id: str = ""
    outlet_id: Optional[str] = None


class SchemeFilters(BaseInputSchema):
    """Caller overrides for which schemes may apply."""
    include_scheme_ids: List[str] = Field(default_factory=list)
    exclude_scheme_ids: List[str] = Field(default_factory=list)


class FetchCandidateSchemesParams(BaseInputSchema):
    warehouse_id: str
    channel_id: str = ""
    business_type_id: str = ""
    include_schemes: Optional[List[str]] = None
    exclude_schemes: Optional[List[str]] = None
    now: datetime


class FetchMissingExcludedSchemesParams(BaseInputSchema):
    scheme_ids: List[str]
    now: datetime


class FetchAllAvailableSchemesParams(BaseInputSchema):
    warehouse_id: str
    channel_id: str = ""
    business_type_id: str = ""
    outlet_id: Optional[str] = None
    now: datetime


# ==================== Evaluation Schemas ====================

class RewardOutcome(BaseResultSchema):
    """Reward produced by one satisfied condition, before it is attached to a scheme."""
    amount: Decimal
    applied_quantity: Decimal
    discount: Decimal
    description: str = ""
    is_capped: bool = False
    max_reward_amount: Optional[Decimal] = None
    calculated_discount_amount: Optional[Decimal] = None  # uncapped amount, set only when capped


class DiscountedProductResult(BaseResultSchema):
    """A product discount line after pricing against the cart."""
    product_id: str
    quantity: Decimal
    type: RewardType
    value: Decimal  # effective value after prorating
    max_discount_amount: Optional[Decimal] = None
    unit_price: Decimal
    total_price: Decimal
    discount_amount: Decimal
    final_price: Decimal


# ==================== Result Schemas ====================

class CalculatedReward(BaseResultSchema):
    """One applied reward row (one per satisfied condition)."""
    scheme_id: str
    scheme_name: str
    condition_type: ConditionType
    priority: int
    reward_type: RewardType
    reward_value: Decimal
    reward_amount: Decimal
    free_products: List[FreeProductReward] = Field(default_factory=list)
    discounted_products: Optional[List[DiscountedProductResult]] = None
    applied_quantity: Decimal
    total_discount: Decimal
    description: str = ""
    discount_percentage: Optional[Decimal] = None
    is_capped: bool = False
    max_reward_amount: Optional[Decimal] = None
    calculated_discount_amount: Optional[Decimal] = None


class SchemeApplicability(BaseResultSchema):
    """Why a scheme was or wasn't applied."""
    scheme_id: str
    scheme_name: Optional[str] = None
    status: Optional[SchemeAppliedStatus] = None
    reason: Optional[str] = None
    blocking_schemes: Optional[List[str]] = None


class RewardSummary(BaseResultSchema):
    total_products: int
    total_quantity: Decimal
    total_value: Decimal
    total_value_after_discount: Decimal
    schemes_applied: int
    free_products: List[FreeProductReward] = Field(default_factory=list)
    discounted_products: Optional[List[DiscountedProductResult]] = None
    discount_value: Decimal


class RewardCalculationResult(BaseResultSchema):
    total_discount: Decimal
    total_reward_amount: Decimal
    applied_schemes: List[CalculatedReward] = Field(default_factory=list)
    available_schemes: List[SchemeApplicability] = Field(default_factory=list)
    summary: RewardSummary
