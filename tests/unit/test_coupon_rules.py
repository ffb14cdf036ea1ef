"""
Tests for the pure coupon decision logic.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from gym_coupons.models.coupon import CouponSettings
from gym_coupons.services.coupon_rules import (
    MSG_DISABLED,
    MSG_EXPIRED,
    MSG_INVALID_CODE,
    MSG_LIMIT_REACHED,
    MSG_NOT_STARTED,
    MSG_PLAN_NOT_ALLOWED,
    as_utc,
    calculate_discount,
    evaluate_coupon,
    format_money,
)
from tests.conftest import NOW


def _evaluate(coupon, coupon_settings, amount=1000, plan_id=1, symbol=""):
    return evaluate_coupon(coupon, coupon_settings, Decimal(str(amount)), plan_id, now=NOW, currency_symbol=symbol)


class TestSettingsAndLookup:

    def test_disabled_settings_reject_everything(self, make_coupon):
        disabled = CouponSettings(id=1, is_enabled=False)
        result = _evaluate(make_coupon(), disabled)

        assert result.is_valid is False
        assert result.message == MSG_DISABLED
        assert result.discount_amount == 0
        assert result.final_amount == Decimal("1000")

    def test_missing_settings_row_counts_as_disabled(self, make_coupon):
        result = _evaluate(make_coupon(), None)
        assert result.message == "Coupons are currently disabled."

    def test_disabled_wins_over_unknown_code(self):
        result = _evaluate(None, CouponSettings(id=1, is_enabled=False))
        assert result.message == MSG_DISABLED

    def test_unknown_code(self, enabled_settings):
        result = _evaluate(None, enabled_settings, amount=100)

        assert result.is_valid is False
        assert result.message == "Invalid coupon code."
        assert result.final_amount == Decimal("100")

    def test_inactive_coupon_is_treated_as_unknown(self, make_coupon, enabled_settings):
        result = _evaluate(make_coupon(is_active=False), enabled_settings)
        assert result.message == MSG_INVALID_CODE


class TestDateWindow:

    def test_not_yet_active(self, make_coupon, enabled_settings):
        coupon = make_coupon(valid_from=NOW + timedelta(days=1))
        result = _evaluate(coupon, enabled_settings)

        assert result.is_valid is False
        assert result.message == "Coupon is not yet active."

    def test_expired(self, make_coupon, enabled_settings):
        coupon = make_coupon(valid_until=NOW - timedelta(days=1))
        result = _evaluate(coupon, enabled_settings)

        assert result.is_valid is False
        assert result.message == "Coupon has expired."

    def test_window_boundaries_are_inclusive(self, make_coupon, enabled_settings):
        coupon = make_coupon(valid_from=NOW, valid_until=NOW)
        assert _evaluate(coupon, enabled_settings).is_valid is True

    def test_open_ended_window(self, make_coupon, enabled_settings):
        coupon = make_coupon(valid_from=None, valid_until=None)
        assert _evaluate(coupon, enabled_settings).is_valid is True

    def test_naive_timestamps_are_read_as_utc(self, make_coupon, enabled_settings):
        coupon = make_coupon(valid_until=(NOW - timedelta(minutes=1)).replace(tzinfo=None))
        assert _evaluate(coupon, enabled_settings).message == MSG_EXPIRED

    def test_start_checked_before_expiry(self, make_coupon, enabled_settings):
        coupon = make_coupon(valid_from=NOW + timedelta(days=1), valid_until=NOW - timedelta(days=1))
        assert _evaluate(coupon, enabled_settings).message == MSG_NOT_STARTED


class TestUsageLimit:

    def test_limit_reached(self, make_coupon, enabled_settings):
        result = _evaluate(make_coupon(usage_limit=5, used_count=5), enabled_settings)

        assert result.is_valid is False
        assert result.message == "Coupon usage limit reached."

    def test_one_use_left(self, make_coupon, enabled_settings):
        result = _evaluate(make_coupon(usage_limit=5, used_count=4), enabled_settings)
        assert result.is_valid is True

    def test_no_limit_means_unlimited(self, make_coupon, enabled_settings):
        result = _evaluate(make_coupon(usage_limit=None, used_count=10_000), enabled_settings)
        assert result.is_valid is True

    def test_zero_limit_is_never_usable(self, make_coupon, enabled_settings):
        result = _evaluate(make_coupon(usage_limit=0, used_count=0), enabled_settings)
        assert result.message == MSG_LIMIT_REACHED


class TestMinimumAmount:

    def test_below_minimum(self, make_coupon, enabled_settings):
        coupon = make_coupon(min_amount=Decimal("500"))
        result = _evaluate(coupon, enabled_settings, amount=499)

        assert result.is_valid is False
        assert "500" in result.message
        assert result.final_amount == Decimal("499")

    def test_exactly_minimum_proceeds(self, make_coupon, enabled_settings):
        coupon = make_coupon(min_amount=Decimal("500"))
        assert _evaluate(coupon, enabled_settings, amount=500).is_valid is True

    def test_message_uses_currency_symbol(self, make_coupon, enabled_settings):
        coupon = make_coupon(min_amount=Decimal("500.00"))
        result = _evaluate(coupon, enabled_settings, amount=10, symbol="₹")
        assert result.message == "Minimum order amount ₹500 required."


class TestPlanRestriction:

    def test_plan_not_in_list(self, make_coupon, enabled_settings):
        coupon = make_coupon(applicable_plans=[1, 2])
        result = _evaluate(coupon, enabled_settings, plan_id=3)

        assert result.is_valid is False
        assert "not applicable" in result.message
        assert result.message == MSG_PLAN_NOT_ALLOWED

    def test_plan_in_list(self, make_coupon, enabled_settings):
        coupon = make_coupon(applicable_plans=[1, 2])
        assert _evaluate(coupon, enabled_settings, plan_id=1).is_valid is True

    @pytest.mark.parametrize("plans", [[], None])
    def test_empty_list_allows_every_plan(self, make_coupon, enabled_settings, plans):
        coupon = make_coupon(applicable_plans=plans)
        assert _evaluate(coupon, enabled_settings, plan_id=42).is_valid is True


class TestDiscount:

    def test_percentage_capped(self, make_coupon, enabled_settings):
        coupon = make_coupon(discount_type="percentage", discount_value=Decimal("20"), max_discount=Decimal("150"))
        result = _evaluate(coupon, enabled_settings, amount=1000)

        assert result.is_valid is True
        assert result.discount_amount == Decimal("150")
        assert result.final_amount == Decimal("850")

    def test_percentage_without_cap(self, make_coupon, enabled_settings):
        coupon = make_coupon(discount_type="percentage", discount_value=Decimal("20"))
        result = _evaluate(coupon, enabled_settings, amount=1000)

        assert result.discount_amount == Decimal("200")
        assert result.final_amount == Decimal("800")

    def test_zero_cap_gives_zero_discount(self, make_coupon, enabled_settings):
        coupon = make_coupon(discount_type="percentage", discount_value=Decimal("20"), max_discount=Decimal("0"))
        result = _evaluate(coupon, enabled_settings, amount=1000)

        assert result.is_valid is True
        assert result.discount_amount == Decimal("0")
        assert result.final_amount == Decimal("1000")

    def test_fixed_larger_than_amount(self, make_coupon, enabled_settings):
        coupon = make_coupon(discount_type="fixed", discount_value=Decimal("300"))
        result = _evaluate(coupon, enabled_settings, amount=200)

        assert result.is_valid is True
        assert result.discount_amount == Decimal("200")
        assert result.final_amount == Decimal("0")

    def test_fixed_smaller_than_amount(self, make_coupon, enabled_settings):
        coupon = make_coupon(discount_type="fixed", discount_value=Decimal("300"))
        result = _evaluate(coupon, enabled_settings, amount=1200)

        assert result.discount_amount == Decimal("300")
        assert result.final_amount == Decimal("900")

    def test_percentage_over_hundred_never_exceeds_amount(self, make_coupon):
        coupon = make_coupon(discount_type="percentage", discount_value=Decimal("150"))
        assert calculate_discount(coupon, Decimal("80")) == Decimal("80")

    def test_discount_rounded_to_cents(self, make_coupon):
        coupon = make_coupon(discount_type="percentage", discount_value=Decimal("15"))
        assert calculate_discount(coupon, Decimal("99.99")) == Decimal("15.00")

    def test_unknown_discount_type_raises(self, make_coupon):
        with pytest.raises(ValueError):
            calculate_discount(make_coupon(discount_type="bogo"), Decimal("100"))

    def test_success_message_and_coupon_payload(self, make_coupon, enabled_settings):
        coupon = make_coupon(discount_type="fixed", discount_value=Decimal("99.5"))
        result = _evaluate(coupon, enabled_settings, amount=1000, symbol="₹")

        assert result.message == "Coupon applied! You saved ₹99.50."
        assert result.coupon.code == "WELCOME20"
        assert result.coupon.id == 1


class TestHelpers:

    def test_format_money(self):
        assert format_money(Decimal("150.00")) == "150"
        assert format_money(Decimal("149.5"), "$") == "$149.50"

    def test_as_utc_parses_iso_strings(self):
        assert as_utc("2026-03-01T12:00:00Z") == NOW
        assert as_utc(None) is None

    def test_result_serializes_with_camel_case(self, make_coupon, enabled_settings):
        result = _evaluate(make_coupon(max_discount=Decimal("150")), enabled_settings)
        body = result.model_dump(by_alias=True, mode="json")

        assert body["isValid"] is True
        assert body["discountAmount"] == 150.0
        assert body["finalAmount"] == 850.0
