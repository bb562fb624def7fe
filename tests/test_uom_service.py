from decimal import Decimal
from fractions import Fraction

from scheme_engine.core.logging import EngineLogger
from scheme_engine.schemas.product import UnitPerCase
from scheme_engine.services.uom_service import UomService
from tests.factories import LogCapture

BOX_OF_50 = [UnitPerCase(numerator=1, buom="BOX", denominator=50, auom="EA")]


def make_service():
    log = LogCapture()
    return UomService(EngineLogger(log)), log


class TestConvert:
    def test_box_to_each_multiplies_by_denominator(self):
        service, _ = make_service()
        result = service.convert(Decimal("50"), "BOX", "EA", BOX_OF_50)
        assert result.resolved
        assert result.as_decimal == Decimal("2500")

    def test_each_to_box_is_the_inverse(self):
        service, _ = make_service()
        result = service.convert(Decimal("125"), "EA", "BOX", BOX_OF_50)
        assert result.as_decimal == Decimal("2.5")

    def test_round_trip_returns_input(self):
        service, _ = make_service()
        factors = [UnitPerCase(numerator=1, buom="CS", denominator=8, auom="EA")]
        there = service.convert(Decimal("7"), "EA", "CS", factors).quantity
        back = service.convert(there, "CS", "EA", factors)
        assert back.as_decimal == Decimal("7")

    def test_round_trip_with_repeating_ratio(self):
        service, _ = make_service()
        factors = [UnitPerCase(numerator=1, buom="CS", denominator=3, auom="EA")]
        there = service.convert(Decimal("1"), "EA", "CS", factors)
        assert there.quantity == Fraction(1, 3)
        back = service.convert(there.quantity, "CS", "EA", factors)
        assert back.quantity == 1
        assert back.as_decimal == Decimal("1")

    def test_round_trip_through_fractional_factor(self):
        service, _ = make_service()
        factors = [UnitPerCase(numerator=7, buom="BAG", denominator=3, auom="KG")]
        there = service.convert(Decimal("10"), "KG", "BAG", factors).quantity
        assert service.convert(there, "BAG", "KG", factors).as_decimal == Decimal("10")

    def test_labels_compare_case_insensitively(self):
        service, _ = make_service()
        assert service.convert(Decimal("2"), "box", "ea", BOX_OF_50).as_decimal == Decimal("100")

    def test_same_unit_is_unchanged(self):
        service, log = make_service()
        result = service.convert(Decimal("3"), "EA", "ea", [])
        assert result.resolved
        assert result.as_decimal == Decimal("3")
        assert log.messages("warn") == []

    def test_missing_label_is_unchanged(self):
        service, _ = make_service()
        result = service.convert(Decimal("3"), None, "EA", BOX_OF_50)
        assert result.resolved
        assert result.as_decimal == Decimal("3")

    def test_no_factors_returns_original_with_warning(self):
        service, log = make_service()
        result = service.convert(Decimal("4"), "BOX", "EA", [])
        assert not result.resolved
        assert result.as_decimal == Decimal("4")
        assert len(log.messages("warn")) == 1

    def test_unrelated_factor_returns_original(self):
        service, log = make_service()
        result = service.convert(Decimal("4"), "BAG", "EA", BOX_OF_50)
        assert not result.resolved
        assert result.as_decimal == Decimal("4")
        assert "No conversion factor found from BAG to EA" in log.messages("warn")[0]

    def test_zero_factor_side_is_not_used(self):
        service, _ = make_service()
        factors = [UnitPerCase(numerator=0, buom="BOX", denominator=50, auom="EA")]
        result = service.convert(Decimal("2"), "BOX", "EA", factors)
        assert not result.resolved
        assert result.as_decimal == Decimal("2")


class TestFindFactor:
    def test_matches_either_direction(self):
        assert UomService.find_factor("EA", "BOX", BOX_OF_50) is BOX_OF_50[0]
        assert UomService.find_factor("BOX", "EA", BOX_OF_50) is BOX_OF_50[0]

    def test_no_match(self):
        assert UomService.find_factor("KG", "BOX", BOX_OF_50) is None
        assert UomService.find_factor("BOX", "EA", None) is None
