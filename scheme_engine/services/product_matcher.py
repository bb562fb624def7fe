"""Cart-line matching rules shared by the evaluator, validators and usage tracker."""
from typing import List, Sequence

from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.scheme import LineItemFilter, SubCriterion


def matches_criterion(item: ProductItem, criterion: SubCriterion) -> bool:
    """Every identifier set on the criterion must equal the item's."""
    if criterion.product_id and item.product_id != criterion.product_id:
        return False
    if criterion.brand_id and item.brand_id != criterion.brand_id:
        return False
    if criterion.category_id and item.category_id != criterion.category_id:
        return False
    if criterion.subcategory_id and item.subcategory_id != criterion.subcategory_id:
        return False
    return True


def filter_by_criterion(items: Sequence[ProductItem], criterion: SubCriterion) -> List[ProductItem]:
    return [item for item in items if matches_criterion(item, criterion)]


def filter_by_first_identifier(items: Sequence[ProductItem], criterion: SubCriterion) -> List[ProductItem]:
    """
    Match on the most specific identifier only (product, then brand, category,
    subcategory). A criterion without identifiers matches nothing.
    """
    if criterion.product_id:
        return [i for i in items if i.product_id == criterion.product_id]
    if criterion.brand_id:
        return [i for i in items if i.brand_id == criterion.brand_id]
    if criterion.category_id:
        return [i for i in items if i.category_id == criterion.category_id]
    if criterion.subcategory_id:
        return [i for i in items if i.subcategory_id == criterion.subcategory_id]
    return []


def matches_id_lists(
    item: ProductItem,
    product_ids: Sequence[str],
    brand_ids: Sequence[str],
    category_ids: Sequence[str],
    subcategory_ids: Sequence[str],
) -> bool:
    """
    Union of the non-empty lists: the item matches if it appears in any of them.
    With every list empty the item matches.

    An empty list is skipped, it never widens the match of the others:
    ``product_ids=["A"]`` with no brands matches product A only.
    """
    if not (product_ids or brand_ids or category_ids or subcategory_ids):
        return True
    return (
        item.product_id in product_ids
        or (item.brand_id is not None and item.brand_id in brand_ids)
        or (item.category_id is not None and item.category_id in category_ids)
        or (item.subcategory_id is not None and item.subcategory_id in subcategory_ids)
    )


def filter_by_id_lists(
    items: Sequence[ProductItem],
    product_ids: Sequence[str],
    brand_ids: Sequence[str],
    category_ids: Sequence[str],
    subcategory_ids: Sequence[str],
) -> List[ProductItem]:
    return [
        item for item in items
        if matches_id_lists(item, product_ids, brand_ids, category_ids, subcategory_ids)
    ]


def filter_line_items(items: Sequence[ProductItem], filter_by: LineItemFilter) -> List[ProductItem]:
    """Apply each configured line-item filter in turn (AND across filters)."""
    applicable = list(items)
    if filter_by.category:
        applicable = [p for p in applicable if p.category_id and p.category_id == filter_by.category]
    if filter_by.product_ids:
        applicable = [p for p in applicable if p.product_id in filter_by.product_ids]
    if filter_by.brand_ids:
        applicable = [p for p in applicable if p.brand_id and p.brand_id in filter_by.brand_ids]
    if filter_by.category_ids:
        applicable = [p for p in applicable if p.category_id and p.category_id in filter_by.category_ids]
    if filter_by.subcategory_ids:
        applicable = [p for p in applicable if p.subcategory_id and p.subcategory_id in filter_by.subcategory_ids]
    return applicable
