from scheme_engine.schemas.scheme import LineItemFilter, SubCriterion
from scheme_engine.services.product_matcher import (
    filter_by_criterion,
    filter_by_first_identifier,
    filter_by_id_lists,
    filter_line_items,
)
from scheme_engine.services.validators import validate_unified_criteria
from tests.factories import make_product

ITEMS = [
    make_product("A", brandId="BR1", categoryId="C1", subcategoryId="SC1"),
    make_product("B", brandId="BR1", categoryId="C2"),
    make_product("C", brandId="BR2", categoryId="C2"),
]


def ids(items):
    return [i.product_id for i in items]


def test_criterion_identifiers_are_anded():
    assert ids(filter_by_criterion(ITEMS, SubCriterion(brand_id="BR1", category_id="C2"))) == ["B"]


def test_first_identifier_wins():
    criterion = SubCriterion(product_id="C", brand_id="BR1")
    assert ids(filter_by_first_identifier(ITEMS, criterion)) == ["C"]
    assert filter_by_first_identifier(ITEMS, SubCriterion()) == []


def test_id_lists_are_a_union():
    assert ids(filter_by_id_lists(ITEMS, ["A"], ["BR2"], [], [])) == ["A", "C"]


def test_empty_id_lists_match_everything():
    assert ids(filter_by_id_lists(ITEMS, [], [], [], [])) == ["A", "B", "C"]


def test_empty_list_does_not_widen_other_lists():
    assert ids(filter_by_id_lists(ITEMS, ["A"], [], [], [])) == ["A"]
    assert ids(filter_by_id_lists(ITEMS, [], ["BR2"], [], [])) == ["C"]


def test_overlapping_lists_are_not_intersected():
    # B is not in the product list but its brand is listed
    assert ids(filter_by_id_lists(ITEMS, ["A"], ["BR1"], [], [])) == ["A", "B"]


def test_line_item_filters_are_anded():
    filter_by = LineItemFilter(brand_ids=["BR1"], category="C2")
    assert ids(filter_line_items(ITEMS, filter_by)) == ["B"]
    assert ids(filter_line_items(ITEMS, LineItemFilter(subcategory_ids=["SC1"]))) == ["A"]


def test_unified_criteria():
    assert validate_unified_criteria([], ITEMS).is_valid
    assert not validate_unified_criteria([SubCriterion(product_id="A")], []).is_valid
    assert validate_unified_criteria([SubCriterion(), SubCriterion(brand_id="BR2")], ITEMS).is_valid
    result = validate_unified_criteria([SubCriterion(), SubCriterion(brand_id="BR9")], ITEMS)
    assert not result.is_valid
    assert result.reason == "No products match the unified criteria requirements"
