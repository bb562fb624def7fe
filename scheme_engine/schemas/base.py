"""
Base Schema Classes for Pydantic Models

Scheme and cart payloads arrive from JavaScript clients and document stores
with camelCase keys. Python code uses snake_case attributes.

RULE: Every engine schema inherits from one of the classes below so that
both spellings are accepted on input and camelCase is produced by
``model_dump(by_alias=True)``.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseInputSchema(BaseModel):
    """
    Base class for caller-supplied payloads (cart lines, schemes).

    Features:
    - camelCase aliases generated from field names
    - Population by field name or alias
    - Unknown keys ignored (storage documents carry _id, __v, audit fields)

    Usage:
        class ProductItem(BaseInputSchema):
            product_id: str          # accepts "productId" or "product_id"
            unit_price: Optional[Decimal] = None
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
    )


class BaseResultSchema(BaseModel):
    """
    Base class for engine output.

    Results are built by the engine itself, so unknown keys are rejected.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='forbid',
    )
