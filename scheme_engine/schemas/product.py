"""Pydantic schemas for cart lines and product master lookups."""
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from scheme_engine.schemas.base import BaseInputSchema


class UnitPerCase(BaseInputSchema):
    """
    Conversion factor between two units.

    ``numerator`` units of ``buom`` equal ``denominator`` units of ``auom``.
    Example: {numerator: 1, buom: "BOX", denominator: 50, auom: "EA"} → 1 BOX = 50 EA
    """
    numerator: Decimal
    buom: str
    denominator: Decimal
    auom: str


class ProductItem(BaseInputSchema):
    """One cart line."""
    product_id: str
    quantity: Decimal = Field(..., ge=0)
    unit_price: Optional[Decimal] = None
    weight: Optional[Decimal] = None  # kg per unit, informational

    # Catalog identifiers
    brand_id: Optional[str] = None
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None

    # Units
    uom: Optional[str] = None
    unit_per_case: List[UnitPerCase] = Field(default_factory=list)

    @field_validator('unit_per_case', mode='before')
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v

    @property
    def line_value(self) -> Decimal:
        """unit_price × quantity, treating a missing price as zero."""
        return (self.unit_price or Decimal("0")) * self.quantity


class UomDetails(BaseInputSchema):
    """Product master UOM data returned by the product data provider."""
    base_uom: Optional[str] = None
    unit_per_case: List[UnitPerCase] = Field(default_factory=list)

    @field_validator('unit_per_case', mode='before')
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v


class PricingGroupProduct(BaseInputSchema):
    """Product → pricing group membership row."""
    product_id: str
    group_id: str


class PricingGroupWarehouse(BaseInputSchema):
    warehouse_id: str


class PricingGroup(BaseInputSchema):
    """Pricing group with the warehouses it is mapped to."""
    group_id: Optional[str] = None
    warehouse: List[PricingGroupWarehouse] = Field(default_factory=list)

    @field_validator('warehouse', mode='before')
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v
