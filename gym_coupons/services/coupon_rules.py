"""
Coupon Rules

Pure decision logic behind coupon validation. Everything the decision
depends on (coupon row, global settings row, purchase, clock) is passed in,
so this module never touches the database.

Checks run in a fixed order and stop at the first failure:
    settings enabled → code known/active → started → not expired →
    usage left → minimum amount → plan allowed → discount
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from gym_coupons.schemas.coupon import CouponResponse, CouponValidationResult, DiscountType

CENT = Decimal("0.01")
ZERO = Decimal("0")

MSG_DISABLED = "Coupons are currently disabled."
MSG_INVALID_CODE = "Invalid coupon code."
MSG_NOT_STARTED = "Coupon is not yet active."
MSG_EXPIRED = "Coupon has expired."
MSG_LIMIT_REACHED = "Coupon usage limit reached."
MSG_MIN_AMOUNT = "Minimum order amount {amount} required."
MSG_PLAN_NOT_ALLOWED = "Coupon not applicable for this plan."
MSG_APPLIED = "Coupon applied! You saved {amount}."
MSG_ERROR = "Error validating coupon."


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def as_utc(value: Any) -> Optional[datetime]:
    """Normalize a stored timestamp; naive values are taken as UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_money(value: Any, currency_symbol: str = "") -> str:
    """150.00 → '150', 149.5 → '149.50'."""
    value = to_decimal(value)
    if value == value.to_integral_value():
        text = str(value.quantize(Decimal("1")))
    else:
        text = str(value.quantize(CENT, rounding=ROUND_HALF_UP))
    return f"{currency_symbol}{text}"


def coupons_enabled(coupon_settings: Any) -> bool:
    """A missing settings row counts as disabled."""
    return bool(coupon_settings is not None and coupon_settings.is_enabled)


def rejection(amount: Any, message: str) -> CouponValidationResult:
    """Negative outcome: nothing discounted, amount unchanged."""
    return CouponValidationResult(
        is_valid=False,
        discount_amount=ZERO,
        final_amount=to_decimal(amount),
        message=message,
    )


def calculate_discount(coupon: Any, amount: Any) -> Decimal:
    """
    Discount for a purchase of `amount`, rounded to cents.

    percentage: amount * value / 100, capped by max_discount when set
    fixed: value, never more than the amount itself
    """
    amount = to_decimal(amount)
    value = to_decimal(coupon.discount_value)
    discount_type = DiscountType(coupon.discount_type)

    if discount_type is DiscountType.PERCENTAGE:
        discount = amount * value / Decimal("100")
        # A cap of 0 yields a zero discount; only NULL means uncapped.
        if coupon.max_discount is not None:
            discount = min(discount, to_decimal(coupon.max_discount))
    else:
        discount = min(value, amount)

    # Percentages above 100 are not rejected at creation time
    discount = max(ZERO, min(discount, amount))
    return discount.quantize(CENT, rounding=ROUND_HALF_UP)


def evaluate_coupon(
    coupon: Any,
    coupon_settings: Any,
    amount: Any,
    plan_id: int,
    now: Optional[datetime] = None,
    currency_symbol: str = "",
) -> CouponValidationResult:
    """
    Decide whether `coupon` applies to a purchase of `amount` for `plan_id`.

    Args:
        coupon: Coupon row looked up by code, or None when no active coupon matched
        coupon_settings: The CouponSettings singleton (None if missing)
        amount: Purchase amount before discount
        plan_id: Plan being purchased
        now: Clock override, defaults to the current UTC time
        currency_symbol: Prefix for amounts in messages

    Returns:
        CouponValidationResult. Malformed rows raise; callers own the
        conversion of unexpected errors into a failed result.
    """
    amount = to_decimal(amount)
    now = as_utc(now) if now else datetime.now(timezone.utc)

    if not coupons_enabled(coupon_settings):
        return rejection(amount, MSG_DISABLED)

    if coupon is None or not coupon.is_active:
        return rejection(amount, MSG_INVALID_CODE)

    valid_from = as_utc(coupon.valid_from)
    if valid_from and valid_from > now:
        return rejection(amount, MSG_NOT_STARTED)

    valid_until = as_utc(coupon.valid_until)
    if valid_until and valid_until < now:
        return rejection(amount, MSG_EXPIRED)

    # 0 is a real limit (never usable); only NULL means unlimited. Admin UIs
    # that store 0 for "no limit" must send null instead.
    if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
        return rejection(amount, MSG_LIMIT_REACHED)

    if coupon.min_amount is not None and amount < to_decimal(coupon.min_amount):
        return rejection(
            amount,
            MSG_MIN_AMOUNT.format(amount=format_money(coupon.min_amount, currency_symbol)),
        )

    plans = coupon.applicable_plans or []
    if plans and int(plan_id) not in {int(p) for p in plans}:
        return rejection(amount, MSG_PLAN_NOT_ALLOWED)

    discount = calculate_discount(coupon, amount)
    final_amount = max(ZERO, amount - discount)

    return CouponValidationResult(
        is_valid=True,
        coupon=CouponResponse.model_validate(coupon),
        discount_amount=discount,
        final_amount=final_amount,
        message=MSG_APPLIED.format(amount=format_money(discount, currency_symbol)),
    )
