from decimal import Decimal

from tests.factories import (
    Services,
    WAREHOUSE_ID,
    fixed_reward,
    invoice_condition,
    make_condition,
    make_product,
    make_provider,
    make_scheme,
    percent_reward,
    run,
)


def condition(data):
    return make_scheme("S1", [data]).conditions[0]


def evaluate(services, cond, items, warehouse_id=None):
    total_value = sum((i.line_value for i in items), Decimal("0"))
    total_quantity = sum((i.quantity for i in items), Decimal("0"))
    return run(services.evaluator.evaluate(cond, items, total_value, total_quantity, warehouse_id))


def two_product_cart():
    return [
        make_product("A", quantity=2, unit_price=100, brandId="BR1"),
        make_product("B", quantity=1, unit_price=50, brandId="BR2"),
    ]


class TestInvoice:
    def test_capped_percentage(self, services):
        cond = condition(invoice_condition(500, percent_reward(10, maxRewardAmount=100)))
        outcome = evaluate(services, cond, [make_product("A", quantity=10, unit_price=100)])
        assert outcome.amount == Decimal("100.00")
        assert outcome.is_capped

    def test_below_minimum(self, services):
        cond = condition(invoice_condition(500, percent_reward(10)))
        assert evaluate(services, cond, [make_product("A", quantity=4, unit_price=100)]) is None

    def test_above_maximum(self, services):
        cond = condition(
            make_condition("invoice", {"minValue": 100, "maxValue": 800}, percent_reward(10))
        )
        assert evaluate(services, cond, [make_product("A", quantity=10, unit_price=100)]) is None

    def test_quantity_basis(self, services):
        cond = condition(
            make_condition("invoice", {"conditionBasis": "quantity", "minValue": 10}, fixed_reward(25))
        )
        outcome = evaluate(services, cond, [make_product("A", quantity=12, unit_price=1)])
        assert outcome.amount == Decimal("25.00")
        assert outcome.description == "Invoice condition met with quantity 12"

    def test_prorated_multiplier(self, services):
        cond = condition(invoice_condition(500, percent_reward(5), isProRated=True))
        outcome = evaluate(services, cond, [make_product("A", quantity=5, unit_price=250)])
        assert outcome.applied_quantity == Decimal("2")
        assert outcome.amount == Decimal("125.00")


class TestLineItem:
    def line_item(self, reward=None, **criteria):
        data = {"minLineTotal": 1}
        data.update(criteria)
        return condition(make_condition("lineItem", data, reward or fixed_reward(50)))

    def test_two_distinct_products(self, services):
        outcome = evaluate(services, self.line_item(), two_product_cart())
        assert outcome is not None
        assert outcome.amount == Decimal("50.00")

    def test_single_product_rejected_regardless_of_quantity(self, services):
        items = [make_product("A", quantity=500, unit_price=10)]
        assert evaluate(services, self.line_item(), items) is None

    def test_filters_narrow_the_lines(self, services):
        cond = self.line_item(filterBy={"brandIds": ["BR1"]})
        assert evaluate(services, cond, two_product_cart()) is None

    def test_line_total_minimum(self, services):
        assert evaluate(services, self.line_item(minLineTotal=3), two_product_cart()) is None

    def test_amount_basis_line_total(self, services):
        cond = self.line_item(minLineTotal=250, aggregationBasis="amount")
        assert evaluate(services, cond, two_product_cart()) is not None
        cond = self.line_item(minLineTotal=251, aggregationBasis="amount")
        assert evaluate(services, cond, two_product_cart()) is None

    def test_percent_reward_uses_cart_total(self, services):
        outcome = evaluate(services, self.line_item(percent_reward(10)), two_product_cart())
        assert outcome.amount == Decimal("25.00")

    def test_unified_criteria_must_match(self, services):
        cond = self.line_item(criteria=[{"productId": "Z"}])
        assert evaluate(services, cond, two_product_cart()) is None
        cond = self.line_item(criteria=[{"productId": "Z"}, {"brandId": "BR2"}])
        assert evaluate(services, cond, two_product_cart()) is not None

    def test_unmapped_pricing_group_rejects(self):
        provider = make_provider(pricing_group_products=[], pricing_groups=[])
        services = Services(provider)
        assert evaluate(services, self.line_item(), two_product_cart(), WAREHOUSE_ID) is None

    def test_mapped_pricing_group_passes(self):
        provider = make_provider(
            pricing_group_products=[
                {"productId": "A", "groupId": "G1"},
                {"productId": "B", "groupId": "G1"},
            ],
            pricing_groups=[{"groupId": "G1", "warehouse": [{"warehouseId": WAREHOUSE_ID}]}],
        )
        services = Services(provider)
        assert evaluate(services, self.line_item(), two_product_cart(), WAREHOUSE_ID) is not None

    def test_pricing_group_for_other_warehouse_rejects(self):
        provider = make_provider(
            pricing_group_products=[
                {"productId": "A", "groupId": "G1"},
                {"productId": "B", "groupId": "G1"},
            ],
            pricing_groups=[{"groupId": "G1", "warehouse": [{"warehouseId": "WH-OTHER"}]}],
        )
        services = Services(provider)
        assert evaluate(services, self.line_item(), two_product_cart(), WAREHOUSE_ID) is None

    def test_failing_pricing_lookup_passes(self):
        async def broken(product_ids):
            raise RuntimeError("timeout")

        provider = make_provider(pricing_group_products=[], pricing_groups=[])
        provider.get_pricing_group_products = broken
        services = Services(provider)
        assert evaluate(services, self.line_item(), two_product_cart(), WAREHOUSE_ID) is not None


class TestComboAll:
    def combo(self, criteria, reward=None, **extra):
        return condition(
            make_condition("combo", {"matchType": "all", "criteria": criteria}, reward or fixed_reward(30), **extra)
        )

    def test_every_criterion_met(self, services):
        cond = self.combo([{"productId": "A", "minValue": 2}, {"productId": "B", "minValue": 1}])
        outcome = evaluate(services, cond, two_product_cart())
        assert outcome.amount == Decimal("30.00")
        assert outcome.applied_quantity == Decimal("3")

    def test_missing_product_rejects(self, services):
        cond = self.combo([{"productId": "A"}, {"productId": "C"}])
        assert evaluate(services, cond, two_product_cart()) is None

    def test_minimum_not_met(self, services):
        cond = self.combo([{"productId": "A", "minValue": 3}, {"productId": "B"}])
        assert evaluate(services, cond, two_product_cart()) is None

    def test_disabled_minimum_is_ignored(self, services):
        cond = self.combo([{"productId": "A", "hasMinValue": False, "minValue": 3}, {"productId": "B"}])
        assert evaluate(services, cond, two_product_cart()) is not None

    def test_maximum_exceeded(self, services):
        cond = self.combo([{"productId": "A", "maxValue": 1}, {"productId": "B"}])
        assert evaluate(services, cond, two_product_cart()) is None

    def test_criterion_without_identifier_rejects(self, services):
        cond = self.combo([{"productId": "A"}, {"minValue": 1}])
        assert evaluate(services, cond, two_product_cart()) is None

    def test_identifiers_are_anded(self, services):
        cond = self.combo([{"productId": "A", "brandId": "BR2"}])
        assert evaluate(services, cond, two_product_cart()) is None

    def test_amount_criteria_reward_on_value(self, services):
        cond = self.combo(
            [
                {"productId": "A", "aggregationBasis": "amount", "minValue": 200},
                {"productId": "B", "aggregationBasis": "amount"},
            ],
            percent_reward(10),
        )
        outcome = evaluate(services, cond, two_product_cart())
        assert outcome.amount == Decimal("25.00")

    def test_criterion_unit_conversion(self, services):
        items = [
            make_product(
                "A", quantity=100, unit_price=1, uom="EA",
                unitPerCase=[{"numerator": 1, "buom": "BOX", "denominator": 50, "auom": "EA"}],
            )
        ]
        cond = self.combo([{"productId": "A", "uom": "BOX", "minValue": 2}])
        assert evaluate(services, cond, items) is not None
        cond = self.combo([{"productId": "A", "uom": "BOX", "minValue": 3}])
        assert evaluate(services, cond, items) is None


class TestComboAny:
    def combo_any(self, reward=None, **criteria):
        data = {"matchType": "any", "criteria": [{"productId": "A"}, {"productId": "B"}]}
        data.update(criteria)
        return condition(make_condition("combo", data, reward or percent_reward(10)))

    def test_amount_basis_checks_value(self, services):
        assert evaluate(services, self.combo_any(aggregationBasis="amount", minValue=300), two_product_cart()) is None
        outcome = evaluate(services, self.combo_any(aggregationBasis="amount", minValue=200), two_product_cart())
        assert outcome.amount == Decimal("25.00")

    def test_amount_basis_zeroes_the_quantity_total(self, services):
        # The pooled amount replaces the quantity total rather than adding to it
        outcome = evaluate(services, self.combo_any(aggregationBasis="amount"), two_product_cart())
        assert outcome.applied_quantity == Decimal("250")

    def test_quantity_basis(self, services):
        outcome = evaluate(services, self.combo_any(fixed_reward(10), minValue=3), two_product_cart())
        assert outcome.amount == Decimal("10.00")
        assert outcome.applied_quantity == Decimal("3")
        assert evaluate(services, self.combo_any(fixed_reward(10), maxValue=2), two_product_cart()) is None

    def test_nothing_pooled(self, services):
        items = [make_product("C", quantity=5)]
        assert evaluate(services, self.combo_any(), items) is None


class TestAssorted:
    def assorted(self, criteria, **top):
        data = {"criteria": criteria}
        data.update(top)
        return condition(make_condition("assorted", data, fixed_reward(40)))

    def test_per_criterion_minimum_is_informational(self, services):
        # Criterion A asks for 10 but only the combined total is enforced
        cond = self.assorted([{"productId": "A", "minValue": 10}, {"productId": "B"}], minValue=3)
        outcome = evaluate(services, cond, two_product_cart())
        assert outcome is not None
        assert outcome.applied_quantity == Decimal("3")
        assert any("informational" in m for m in services.log.messages())

    def test_per_criterion_maximum_is_informational(self, services):
        cond = self.assorted([{"productId": "A", "maxValue": 1}, {"productId": "B"}], minValue=3)
        assert evaluate(services, cond, two_product_cart()) is not None

    def test_one_product_alone_can_satisfy(self, services):
        cond = self.assorted([{"productId": "A"}, {"productId": "Z"}], minValue=2)
        assert evaluate(services, cond, two_product_cart()) is not None

    def test_nothing_matched(self, services):
        cond = self.assorted([{"productId": "Y"}, {"productId": "Z"}])
        assert evaluate(services, cond, two_product_cart()) is None

    def test_total_below_minimum(self, services):
        cond = self.assorted([{"productId": "A"}, {"productId": "B"}], minValue=4)
        assert evaluate(services, cond, two_product_cart()) is None

    def test_total_above_maximum(self, services):
        cond = self.assorted([{"productId": "A"}, {"productId": "B"}], maxValue=2)
        assert evaluate(services, cond, two_product_cart()) is None

    def test_flat_lists(self, services):
        cond = condition(make_condition("assorted", {"brandIds": ["BR1"], "minValue": 2}, fixed_reward(40)))
        assert evaluate(services, cond, two_product_cart()) is not None
        cond = condition(make_condition("assorted", {"brandIds": ["BR9"]}, fixed_reward(40)))
        assert evaluate(services, cond, two_product_cart()) is None


class TestFlexibleProduct:
    def flexible(self, **criteria):
        return condition(make_condition("flexibleProduct", criteria, percent_reward(5)))

    def test_any_product(self, services):
        outcome = evaluate(services, self.flexible(allowAnyProduct=True, minValue=200), two_product_cart())
        assert outcome.amount == Decimal("12.50")
        assert "anyProduct" in outcome.description

    def test_quantity_bounds(self, services):
        assert evaluate(services, self.flexible(allowAnyProduct=True, minQty=4), two_product_cart()) is None
        assert evaluate(services, self.flexible(allowAnyProduct=True, maxQty=2), two_product_cart()) is None

    def test_value_bounds(self, services):
        assert evaluate(services, self.flexible(allowAnyProduct=True, minValue=251), two_product_cart()) is None
        assert evaluate(services, self.flexible(allowAnyProduct=True, maxValue=249), two_product_cart()) is None

    def test_id_lists(self, services):
        outcome = evaluate(services, self.flexible(productIds=["B"]), two_product_cart())
        assert outcome.amount == Decimal("2.50")
        assert evaluate(services, self.flexible(productIds=["Z"]), two_product_cart()) is None
