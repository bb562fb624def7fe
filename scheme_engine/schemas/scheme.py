"""Pydantic schemas for schemes, their conditions and rewards."""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BeforeValidator, Field, field_validator

from scheme_engine.schemas.base import BaseInputSchema


# ==================== Enums ====================

class SchemeStatus(str, Enum):
    """Scheme lifecycle status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    REJECTED = "rejected"
    APPROVED = "approved"


class ConditionType(str, Enum):
    """Shape of a condition's criteria."""
    COMBO = "combo"
    ASSORTED = "assorted"
    INVOICE = "invoice"
    LINE_ITEM = "lineItem"
    FLEXIBLE_PRODUCT = "flexibleProduct"


class MatchType(str, Enum):
    ALL = "all"
    ANY = "any"
    NONE = "none"


class AggregationBasis(str, Enum):
    """Dimension used to aggregate matched cart lines."""
    QUANTITY = "quantity"
    AMOUNT = "amount"
    WEIGHT = "weight"
    UNITS = "units"


class ConditionBasis(str, Enum):
    AMOUNT = "amount"
    QUANTITY = "quantity"
    WEIGHT = "weight"


class RewardType(str, Enum):
    FREE_PRODUCT = "freeProduct"
    DISCOUNT_PERCENT = "discountPercent"
    DISCOUNT_FIXED = "discountFixed"
    DISCOUNT_PRODUCT = "discountProduct"
    CASHBACK = "cashback"
    LOYALTY_POINTS = "loyaltyPoints"
    PRODUCT_DISCOUNT = "productDiscount"


class SchemeAppliedStatus(str, Enum):
    APPLIED = "applied"
    BLOCKED = "blocked"
    NOT_APPLICABLE = "not_applicable"
    EXCLUDED = "excluded"


ANY_PRODUCT = "anyProduct"


def _none_as_empty(v):
    return [] if v is None else v


# Storage documents send null for empty arrays
IdList = Annotated[List[str], BeforeValidator(_none_as_empty)]


# ==================== Applicability ====================

class ApplicableTo(BaseInputSchema):
    """
    Allow-lists restricting where a scheme applies.

    Empty lists mean "no restriction". Context lists (warehouse, channel,
    business type, outlet) are OR-ed; product lists must each find a match.
    """
    warehouse_ids: IdList = Field(default_factory=list)
    channel_ids: IdList = Field(default_factory=list)
    business_type_ids: IdList = Field(default_factory=list)
    outlet_ids: IdList = Field(default_factory=list)
    product_ids: IdList = Field(default_factory=list)
    brand_ids: IdList = Field(default_factory=list)
    category_ids: IdList = Field(default_factory=list)
    subcategory_ids: IdList = Field(default_factory=list)


# ==================== Criteria ====================

class SubCriterion(BaseInputSchema):
    """One identifier + threshold entry inside combo/assorted/line-item criteria."""
    product_id: Optional[str] = None
    brand_id: Optional[str] = None
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    aggregation_basis: Optional[AggregationBasis] = None
    uom: Optional[str] = None
    has_min_value: Optional[bool] = None
    min_value: Optional[Decimal] = None
    has_max_value: Optional[bool] = None
    max_value: Optional[Decimal] = None

    @property
    def has_identifier(self) -> bool:
        return bool(self.product_id or self.brand_id or self.category_id or self.subcategory_id)

    @property
    def min_enforced(self) -> bool:
        """Explicit flag wins; without a flag a present bound is active."""
        if self.has_min_value is not None:
            return self.has_min_value and self.min_value is not None
        return self.min_value is not None

    @property
    def max_enforced(self) -> bool:
        if self.has_max_value is not None:
            return self.has_max_value and self.max_value is not None
        return self.max_value is not None


CriterionList = Annotated[List[SubCriterion], BeforeValidator(_none_as_empty)]


class ComboCriteria(BaseInputSchema):
    match_type: MatchType = MatchType.ALL
    criteria: CriterionList = Field(default_factory=list)
    aggregation_basis: Optional[AggregationBasis] = None
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    max_applications: Optional[Decimal] = None


class AssortedCriteria(BaseInputSchema):
    aggregation_basis: Optional[AggregationBasis] = None
    product_ids: IdList = Field(default_factory=list)
    brand_ids: IdList = Field(default_factory=list)
    category_ids: IdList = Field(default_factory=list)
    subcategory_ids: IdList = Field(default_factory=list)
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    uom: Optional[str] = None
    criteria: CriterionList = Field(default_factory=list)
    max_applications: Optional[Decimal] = None


class InvoiceCriteria(BaseInputSchema):
    condition_basis: ConditionBasis = ConditionBasis.AMOUNT
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None


class LineItemFilter(BaseInputSchema):
    category: Optional[str] = None
    product_ids: IdList = Field(default_factory=list)
    brand_ids: IdList = Field(default_factory=list)
    category_ids: IdList = Field(default_factory=list)
    subcategory_ids: IdList = Field(default_factory=list)


class LineItemCriteria(BaseInputSchema):
    filter_by: LineItemFilter = Field(default_factory=LineItemFilter)
    min_line_total: Decimal = Decimal("0")
    max_line_total: Optional[Decimal] = None  # carried for round-tripping, not enforced
    aggregation_basis: Optional[AggregationBasis] = None
    uom: Optional[str] = None
    criteria: CriterionList = Field(default_factory=list)
    max_applications: Optional[Decimal] = None

    @field_validator('filter_by', mode='before')
    @classmethod
    def none_as_empty_filter(cls, v):
        return {} if v is None else v


class FlexibleProductCriteria(BaseInputSchema):
    product_ids: IdList = Field(default_factory=list)
    brand_ids: IdList = Field(default_factory=list)
    category_ids: IdList = Field(default_factory=list)
    subcategory_ids: IdList = Field(default_factory=list)
    allow_any_product: bool = False
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    min_qty: Optional[Decimal] = None
    max_qty: Optional[Decimal] = None


# ==================== Rewards ====================

class FreeProductReward(BaseInputSchema):
    product_id: str
    quantity: Decimal = Decimal("1")
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None


class ProductDiscountReward(BaseInputSchema):
    """Discount granted on a specific product."""
    product_id: str
    quantity: Optional[Decimal] = None  # defaults to 1 when applied
    type: RewardType = RewardType.DISCOUNT_PERCENT
    value: Decimal = Decimal("0")
    max_discount_amount: Optional[Decimal] = None


class Reward(BaseInputSchema):
    type: RewardType
    value: Decimal = Decimal("0")
    max_reward_amount: Optional[Decimal] = None
    products: Annotated[List[FreeProductReward], BeforeValidator(_none_as_empty)] = Field(default_factory=list)
    discounted_products: Annotated[List[ProductDiscountReward], BeforeValidator(_none_as_empty)] = Field(default_factory=list)
    max_applications: Optional[Decimal] = None


# ==================== Conditions ====================

class ConditionBase(BaseInputSchema):
    priority: int = 0  # lower = higher precedence
    is_pro_rated: bool = False
    is_available_for_half: bool = False
    reward: Reward

    @property
    def kind(self) -> ConditionType:
        return ConditionType(self.condition_type)


class ComboCondition(ConditionBase):
    condition_type: Literal["combo"]
    criteria: ComboCriteria


class AssortedCondition(ConditionBase):
    condition_type: Literal["assorted"]
    criteria: AssortedCriteria


class InvoiceCondition(ConditionBase):
    condition_type: Literal["invoice"]
    criteria: InvoiceCriteria


class LineItemCondition(ConditionBase):
    condition_type: Literal["lineItem"]
    criteria: LineItemCriteria


class FlexibleProductCondition(ConditionBase):
    condition_type: Literal["flexibleProduct"]
    criteria: FlexibleProductCriteria


Condition = Annotated[
    Union[
        ComboCondition,
        AssortedCondition,
        InvoiceCondition,
        LineItemCondition,
        FlexibleProductCondition,
    ],
    Field(discriminator="condition_type"),
]


# ==================== Scheme ====================

class Scheme(BaseInputSchema):
    """A promotional scheme as returned by the caller's scheme lookups."""
    scheme_id: str
    scheme_name: str = ""
    description: Optional[str] = None
    status: Optional[SchemeStatus] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    max_reward_per_invoice: Optional[Decimal] = None
    created_by: Optional[str] = None

    applicable_to: Optional[ApplicableTo] = None
    conditions: Annotated[List[Condition], BeforeValidator(_none_as_empty)] = Field(default_factory=list)
    mutual_exclusion_group: Optional[str] = None

    @property
    def priority(self) -> float:
        """Best (lowest) condition priority; schemes without conditions sort last."""
        if not self.conditions:
            return float("inf")
        return min(c.priority for c in self.conditions)

    @property
    def has_invoice_condition(self) -> bool:
        return any(c.kind == ConditionType.INVOICE for c in self.conditions)
