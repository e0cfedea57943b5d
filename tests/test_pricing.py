"""Tests for the pricing engine."""

from decimal import Decimal

import pytest

from conftest import make_event
from kitrunner.core.pricing import AppliedCoupon, compute_price, to_money


class TestExtraKits:
    @pytest.mark.parametrize("quantity", [1, 2, 3, 4, 5])
    @pytest.mark.parametrize("unit_price", ["0.00", "8.00", "10.50"])
    def test_extra_kits_cost(self, quantity: int, unit_price: str) -> None:
        event = make_event(extra_kit_price=Decimal(unit_price))
        result = compute_price(event, quantity, Decimal("18.50"))
        assert result.extra_kits == quantity - 1
        assert result.extra_kits_cost == Decimal(unit_price) * (quantity - 1)

    def test_single_kit_has_no_extra_cost(self) -> None:
        result = compute_price(make_event(), 1, Decimal("18.50"))
        assert result.extra_kits_cost == Decimal("0.00")

    @pytest.mark.parametrize("quantity", [0, 6, -1])
    def test_quantity_out_of_range(self, quantity: int) -> None:
        with pytest.raises(ValueError):
            compute_price(make_event(), quantity, Decimal("18.50"))


class TestTotals:
    @pytest.mark.parametrize("quantity", [1, 3, 5])
    @pytest.mark.parametrize("percentage", ["0", "10", "33.33", "100", "150"])
    def test_total_identity_never_negative(self, quantity: int, percentage: str) -> None:
        coupon = AppliedCoupon(code="X", percentage=Decimal(percentage))
        result = compute_price(make_event(), quantity, Decimal("18.50"), coupon)
        assert result.total_cost == result.base_cost + result.extra_kits_cost - result.discount_amount
        assert result.total_cost >= Decimal("0")

    def test_delivery_scenario(self) -> None:
        result = compute_price(make_event(), 3, Decimal("18.50"))
        assert result.base_cost == Decimal("18.50")
        assert result.extra_kits_cost == Decimal("16.00")
        assert result.total_cost == Decimal("34.50")
        assert not result.fixed_price_applied

    def test_fixed_price_scenario(self) -> None:
        event = make_event(fixed_price=Decimal("50.00"))
        result = compute_price(event, 1, Decimal("999.00"))
        assert result.total_cost == Decimal("50.00")
        assert result.pickup_cost == Decimal("50.00")
        assert result.delivery_cost == Decimal("0.00")

    @pytest.mark.parametrize("delivery", ["0", "5.00", "18.50", "999.99"])
    def test_fixed_price_ignores_delivery(self, delivery: str) -> None:
        event = make_event(fixed_price=Decimal("50.00"))
        assert compute_price(event, 2, Decimal(delivery)).total_cost == Decimal("58.00")

    def test_negative_delivery_rejected(self) -> None:
        with pytest.raises(ValueError):
            compute_price(make_event(), 1, Decimal("-1"))


class TestDonation:
    def test_required_donation_added_to_base(self) -> None:
        event = make_event(donation_required=True, donation_amount=Decimal("5.00"))
        result = compute_price(event, 1, Decimal("18.50"))
        assert result.donation_cost == Decimal("5.00")
        assert result.base_cost == Decimal("23.50")

    def test_optional_donation_ignored(self) -> None:
        event = make_event(donation_required=False, donation_amount=Decimal("5.00"))
        assert compute_price(event, 1, Decimal("18.50")).donation_cost == Decimal("0.00")

    def test_fixed_price_absorbs_donation(self) -> None:
        event = make_event(
            fixed_price=Decimal("50.00"),
            donation_required=True,
            donation_amount=Decimal("5.00"),
        )
        result = compute_price(event, 1, Decimal("18.50"))
        assert result.donation_cost == Decimal("0.00")
        assert result.total_cost == Decimal("50.00")


class TestCoupon:
    def test_discount_applies_to_subtotal_with_extra_kits(self) -> None:
        coupon = AppliedCoupon(code="KITRUNNER10", percentage=Decimal("10"))
        result = compute_price(make_event(), 3, Decimal("18.50"), coupon)
        assert result.subtotal == Decimal("34.50")
        assert result.discount_amount == Decimal("3.45")
        assert result.total_cost == Decimal("31.05")
        assert result.coupon_code == "KITRUNNER10"

    def test_discount_rounds_half_up(self) -> None:
        coupon = AppliedCoupon(code="X15", percentage=Decimal("15"))
        result = compute_price(make_event(), 3, Decimal("18.50"), coupon)
        # 15% de 34.50 = 5.175
        assert result.discount_amount == Decimal("5.18")
        assert result.total_cost == Decimal("29.32")

    def test_percentage_clamped_to_full_discount(self) -> None:
        coupon = AppliedCoupon(code="ALL", percentage=Decimal("150"))
        result = compute_price(make_event(), 2, Decimal("18.50"), coupon)
        assert result.discount_percentage == Decimal("100")
        assert result.total_cost == Decimal("0.00")

    def test_without_coupon(self) -> None:
        result = compute_price(make_event(), 2, Decimal("18.50"))
        assert result.discount_amount == Decimal("0.00")
        assert result.coupon_code is None


def test_to_money() -> None:
    assert to_money(None) == Decimal("0.00")
    assert to_money(18.5) == Decimal("18.50")
    assert to_money(Decimal("1.005")) == Decimal("1.01")


def test_deterministic() -> None:
    event = make_event(donation_required=True, donation_amount=Decimal("2.50"))
    coupon = AppliedCoupon(code="X", percentage=Decimal("12.5"))
    assert compute_price(event, 4, Decimal("21.30"), coupon) == compute_price(event, 4, Decimal("21.30"), coupon)
