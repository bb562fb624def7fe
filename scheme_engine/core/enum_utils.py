"""
Enum and Unit-Label Utilities

CONVENTIONS:
━━━━━━━━━━━━
• Scheme payloads carry enum fields as camelCase strings ("discountPercent",
  "lineItem"). Pydantic parses them into str-Enums on the way in.
• Services compare against the Enum members, never against raw strings.
• Unit-of-measure labels ("EA", "Box", "kg") are free text from the catalog.
  They are compared case-insensitively and never stored back.

USAGE PATTERNS:
━━━━━━━━━━━━━━━
1. Safe value access (enum or plain string):
   get_enum_value(condition.condition_type)  # 'invoice'

2. Status checks across enum members:
   status_in(entry.status, SchemeAppliedStatus.EXCLUDED)

3. Unit comparison:
   same_uom("box", "BOX")  # True
   uom_in("kilograms", WEIGHT_UOMS)  # True
"""

from enum import Enum
from typing import Any, Iterable, Optional


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(RewardType.CASHBACK)
        'cashback'
        >>> get_enum_value("cashback")
        'cashback'
        >>> get_enum_value(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def status_in(value: Any, *members: Enum) -> bool:
    """
    Check if a value (enum or string) matches any of the given enum members.

    Examples:
        >>> status_in(result.status, SchemeAppliedStatus.EXCLUDED, SchemeAppliedStatus.BLOCKED)
        True
    """
    if value is None:
        return False
    return get_enum_value(value) in [m.value for m in members]


# =============================================================================
# UNIT-OF-MEASURE LABELS
# =============================================================================

def normalize_to_uppercase(value: Any) -> Any:
    """
    Normalize a unit label to stripped UPPERCASE.

    Non-string values are returned untouched for Pydantic to handle.

    Examples:
        >>> normalize_to_uppercase(' kg ')
        'KG'
        >>> normalize_to_uppercase(None)
        None
    """
    if isinstance(value, str):
        return value.strip().upper()
    return value


def same_uom(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive unit comparison. Missing labels never match."""
    if not left or not right:
        return False
    return normalize_to_uppercase(left) == normalize_to_uppercase(right)


def uom_in(value: Optional[str], valid_values: Iterable[str]) -> bool:
    """Check a unit label against a set of UPPERCASE labels."""
    if not value:
        return False
    return normalize_to_uppercase(value) in valid_values


# =============================================================================
# PRE-DEFINED UNIT SETS
# =============================================================================

KILOGRAM_UOMS = {"KG", "KILOGRAM", "KILOGRAMS"}

GRAM_UOMS = {"G", "GRAM", "GRAMS"}

WEIGHT_UOMS = KILOGRAM_UOMS | GRAM_UOMS
