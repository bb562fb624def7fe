from decimal import Decimal

import pytest

from scheme_engine.schemas.scheme import AggregationBasis
from tests.factories import Services, make_product, make_provider, run

BOX_OF_50 = [{"numerator": 1, "buom": "BOX", "denominator": 50, "auom": "EA"}]
BAG_OF_20 = [{"numerator": 1, "buom": "BAG", "denominator": 20, "auom": "EA"}]


class TestAggregate:
    def test_amount_sums_line_values(self, services):
        items = [
            make_product("P1", quantity=2, unit_price=150),
            make_product("P2", quantity=3, unit_price="10.50"),
        ]
        assert run(services.aggregation.aggregate(items, AggregationBasis.AMOUNT)) == Decimal("331.50")

    def test_missing_price_counts_as_zero(self, services):
        items = [make_product("P1", quantity=2, unit_price=None)]
        assert run(services.aggregation.aggregate(items, AggregationBasis.AMOUNT)) == Decimal("0")

    def test_quantity_without_target_sums_raw(self, services):
        items = [make_product("P1", quantity=2, uom="BOX"), make_product("P2", quantity=5, uom="EA")]
        assert run(services.aggregation.aggregate(items, AggregationBasis.QUANTITY)) == Decimal("7")

    def test_boxes_convert_to_each(self, services):
        items = [make_product("P1", quantity=50, uom="BOX", unitPerCase=BOX_OF_50)]
        total = run(services.aggregation.aggregate(items, AggregationBasis.QUANTITY, "EA"))
        assert total == Decimal("2500")

    def test_units_basis_aggregates_like_quantity(self, services):
        items = [make_product("P1", quantity=2, uom="BOX", unitPerCase=BOX_OF_50)]
        assert run(services.aggregation.aggregate(items, AggregationBasis.UNITS, "EA")) == Decimal("100")

    def test_unconvertible_line_keeps_raw_quantity(self, services):
        items = [make_product("P1", quantity=3, uom="BAG")]
        assert run(services.aggregation.aggregate(items, AggregationBasis.QUANTITY, "BOX")) == Decimal("3")
        assert services.log.messages("warn")


class TestUnlabeledLines:
    def test_assumed_each_when_target_is_each(self, services):
        items = [make_product("P1", quantity=12, uom=None)]
        assert run(services.aggregation.aggregate(items, AggregationBasis.QUANTITY, "EA")) == Decimal("12")

    def test_not_available_label_is_treated_as_unlabeled(self, services):
        items = [make_product("P1", quantity=100, uom="N/A", unitPerCase=BOX_OF_50)]
        assert run(services.aggregation.aggregate(items, AggregationBasis.QUANTITY, "BOX")) == Decimal("2")

    def test_master_factors_convert_from_each(self):
        provider = make_provider(uom_details={"P1": {"baseUom": "BOX", "unitPerCase": BOX_OF_50}})
        services = Services(provider)
        items = [make_product("P1", quantity=150, uom=None)]
        assert run(services.aggregation.aggregate(items, AggregationBasis.QUANTITY, "BOX")) == Decimal("3")


class TestWeight:
    def test_capacity_times_base_quantity(self):
        provider = make_provider(
            capacities={"P1": 25},
            uom_details={"P1": {"baseUom": "BAG", "unitPerCase": BAG_OF_20}},
        )
        services = Services(provider)
        items = [make_product("P1", quantity=40, uom="EA", unitPerCase=BAG_OF_20)]
        assert run(services.aggregation.aggregate(items, AggregationBasis.WEIGHT)) == Decimal("50")

    def test_grams_target(self):
        provider = make_provider(
            capacities={"P1": 25},
            uom_details={"P1": {"baseUom": "BAG", "unitPerCase": BAG_OF_20}},
        )
        services = Services(provider)
        items = [make_product("P1", quantity=40, uom="EA", unitPerCase=BAG_OF_20)]
        assert run(services.aggregation.aggregate(items, AggregationBasis.WEIGHT, "G")) == Decimal("50000")

    def test_without_provider_falls_back_to_quantity(self, services):
        items = [make_product("P1", quantity=4, uom="BAG")]
        assert run(services.aggregation.aggregate(items, AggregationBasis.WEIGHT)) == Decimal("4")

    def test_failing_capacity_lookup_is_logged_not_raised(self):
        async def broken(product_id):
            raise RuntimeError("product master down")

        provider = make_provider()
        provider.get_product_capacity_in_kg = broken
        services = Services(provider)
        items = [make_product("P1", quantity=4, uom="BAG")]
        assert run(services.aggregation.aggregate(items, AggregationBasis.WEIGHT)) == Decimal("4")
        assert any("product master down" in m for m in services.log.messages("error"))


class TestMeetsMinimum:
    @pytest.fixture
    def case_line(self):
        return make_product(
            "P1",
            quantity=1,
            uom="CASE",
            unitPerCase=[
                {"numerator": 1, "buom": "BOX", "denominator": 12, "auom": "EA"},
                {"numerator": 1, "buom": "CASE", "denominator": 24, "auom": "EA"},
            ],
        )

    def test_direct_comparison(self, services, case_line):
        assert run(
            services.aggregation.meets_minimum(
                [case_line], Decimal("3"), Decimal("2"), AggregationBasis.QUANTITY, "BOX"
            )
        )

    def test_retries_in_each(self, services, case_line):
        # 1 CASE cannot convert to BOX directly, but 24 EA >= 2 BOX (24 EA)
        value = run(services.aggregation.aggregate([case_line], AggregationBasis.QUANTITY, "BOX"))
        assert value == Decimal("1")
        assert run(
            services.aggregation.meets_minimum([case_line], value, Decimal("2"), AggregationBasis.QUANTITY, "BOX")
        )

    def test_each_retry_still_fails_when_short(self, services, case_line):
        assert not run(
            services.aggregation.meets_minimum(
                [case_line], Decimal("1"), Decimal("3"), AggregationBasis.QUANTITY, "BOX"
            )
        )

    def test_no_retry_for_amount_basis(self, services, case_line):
        assert not run(
            services.aggregation.meets_minimum(
                [case_line], Decimal("1"), Decimal("2"), AggregationBasis.AMOUNT, "BOX"
            )
        )
