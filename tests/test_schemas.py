from decimal import Decimal

import pytest
from pydantic import ValidationError

from scheme_engine.config import Settings
from scheme_engine.core.money import floor_ratio, round_money, to_decimal
from scheme_engine.schemas.scheme import (
    AssortedCondition,
    ComboCondition,
    ConditionType,
    InvoiceCondition,
    MatchType,
    SubCriterion,
)
from tests.factories import fixed_reward, invoice_condition, make_condition, make_product, make_scheme


class TestScheme:
    def test_conditions_are_parsed_by_type(self):
        scheme = make_scheme(
            "S1",
            [
                invoice_condition(100, fixed_reward(5), priority=3),
                make_condition("combo", {"criteria": [{"productId": "A"}]}, fixed_reward(5), priority=2),
                make_condition("assorted", {"productIds": None, "criteria": None}, fixed_reward(5)),
            ],
        )
        invoice, combo, assorted = scheme.conditions
        assert isinstance(invoice, InvoiceCondition)
        assert isinstance(combo, ComboCondition)
        assert combo.criteria.match_type == MatchType.ALL
        assert isinstance(assorted, AssortedCondition)
        assert assorted.criteria.product_ids == []
        assert combo.kind == ConditionType.COMBO
        assert scheme.priority == 1
        assert scheme.has_invoice_condition

    def test_scheme_without_conditions_sorts_last(self):
        assert make_scheme("S1", []).priority == float("inf")

    def test_unknown_condition_type_is_rejected(self):
        with pytest.raises(ValidationError):
            make_scheme("S1", [make_condition("mystery", {}, fixed_reward(1))])

    def test_null_lists_from_storage(self):
        scheme = make_scheme("S1", [], applicable_to={"productIds": None, "warehouseIds": ["WH-1"]})
        assert scheme.applicable_to.product_ids == []
        assert scheme.applicable_to.warehouse_ids == ["WH-1"]


class TestSubCriterion:
    def test_present_bound_is_enforced(self):
        assert SubCriterion(min_value=2).min_enforced
        assert not SubCriterion().min_enforced

    def test_flag_overrides_bound(self):
        assert not SubCriterion(has_min_value=False, min_value=2).min_enforced
        assert not SubCriterion(has_max_value=True).max_enforced
        assert SubCriterion(has_max_value=True, max_value=5).max_enforced


class TestProductItem:
    def test_camel_case_input(self):
        item = make_product("A", quantity="2.5", unit_price=10, unitPerCase=None, brandId="BR1")
        assert item.line_value == Decimal("25.0")
        assert item.unit_per_case == []
        assert item.brand_id == "BR1"

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            make_product("A", quantity=-1)


class TestMoney:
    def test_round_money_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(0.1 + 0.2) == Decimal("0.30")
        assert round_money(Decimal("2.5"), Decimal("1")) == Decimal("3")

    def test_floor_ratio(self):
        assert floor_ratio(Decimal("1250"), Decimal("500")) == Decimal("2")
        assert floor_ratio(Decimal("5"), Decimal("0")) == Decimal("0")

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(1.1) == Decimal("1.1")


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.EACH_UOM == "EA"
        assert settings.PRORATE_UNIT_VALUE == Decimal("100")
        assert settings.INVOICE_GROUP_KEY == "invoice_schemes"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SCHEME_ENGINE_EACH_UOM", "pcs")
        monkeypatch.setenv("SCHEME_ENGINE_PRORATE_UNIT_VALUE", "50")
        settings = Settings()
        assert settings.EACH_UOM == "PCS"
        assert settings.PRORATE_UNIT_VALUE == Decimal("50")
