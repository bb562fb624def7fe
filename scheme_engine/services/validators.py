"""Secondary criteria checks used by the line-item condition."""
from dataclasses import dataclass
from typing import Optional, Sequence

from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.scheme import SubCriterion
from scheme_engine.services.product_matcher import filter_by_criterion


@dataclass
class ValidationResult:
    is_valid: bool
    reason: Optional[str] = None


def validate_unified_criteria(
    criteria: Sequence[SubCriterion],
    items: Sequence[ProductItem],
) -> ValidationResult:
    """
    Pass when at least one identified sub-criterion matches a cart line.

    Sub-criteria without any identifier are ignored.
    """
    if not criteria:
        return ValidationResult(True)

    if not items:
        return ValidationResult(False, "No products provided for validation")

    for criterion in criteria:
        if not criterion.has_identifier:
            continue
        if filter_by_criterion(items, criterion):
            return ValidationResult(True)

    return ValidationResult(False, "No products match the unified criteria requirements")
