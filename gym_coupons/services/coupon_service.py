"""
Coupon Service

Handles validation, application, redemption, and admin management.

Error policy:
- Admin/redemption operations catch StoreError and return a failed
  ServiceResult; nothing is retried.
- validate_coupon never raises. Rule failures and unexpected errors are
  folded into the returned CouponValidationResult.
"""

import logging
from decimal import Decimal
from typing import Any

from gym_coupons.core.config import Settings, settings
from gym_coupons.core.exceptions import AtomicIncrementUnavailable, StoreError
from gym_coupons.models.coupon import utcnow
from gym_coupons.schemas.coupon import (
    CouponCreate,
    CouponResponse,
    CouponSettingsResponse,
    CouponSettingsUpdate,
    CouponStats,
    CouponUpdate,
    CouponValidationResult,
    ServiceResult,
)
from gym_coupons.services.coupon_rules import (
    MSG_DISABLED,
    MSG_ERROR,
    MSG_LIMIT_REACHED,
    coupons_enabled,
    evaluate_coupon,
    rejection,
    to_decimal,
)
from gym_coupons.services.coupon_store import CouponStore

logger = logging.getLogger(__name__)


def _failure(action: str, error: StoreError) -> ServiceResult:
    logger.error(f"[COUPON] {action} failed: {error.to_dict()}")
    return ServiceResult.fail(error.message, error_code=error.code)


def _usage(coupon) -> str:
    limit = "∞" if coupon.usage_limit is None else coupon.usage_limit
    return f"{coupon.used_count}/{limit}"


class CouponService:
    """
    Coupon engine.

    Features:
    - Code validation with all constraint checks
    - Percentage / fixed discount calculation
    - Usage accounting (atomic, with a read-then-write fallback)
    - Single-call redemption that cannot exceed the usage limit
    - Admin CRUD, activation toggle, stats and global settings
    """

    def __init__(self, store: CouponStore, config: Settings = settings):
        self.store = store
        self.config = config

    # ------------------------------------------------------------------
    # Admin CRUD
    # ------------------------------------------------------------------

    async def list_coupons(self) -> ServiceResult:
        """All coupons, newest first."""
        try:
            coupons = await self.store.list_coupons()
        except StoreError as e:
            return _failure("list", e)
        return ServiceResult.ok([CouponResponse.model_validate(c) for c in coupons])

    async def create_coupon(self, payload: CouponCreate) -> ServiceResult:
        """
        Create a coupon.

        Field combinations are not cross-checked (a percentage coupon
        without max_discount is fine); duplicate codes come back from the
        store as a failure.
        """
        try:
            coupon = await self.store.insert_coupon(payload.model_dump())
        except StoreError as e:
            return _failure("create", e)

        logger.info(f"[COUPON] Created {coupon.code} (id={coupon.id})")
        return ServiceResult.ok(CouponResponse.model_validate(coupon))

    async def update_coupon(self, coupon_id: int, payload: CouponUpdate) -> ServiceResult:
        """Partial update; only fields present in the payload are written."""
        fields = payload.model_dump(exclude_unset=True)
        fields["updated_at"] = utcnow()

        try:
            coupon = await self.store.update_coupon(coupon_id, fields)
        except StoreError as e:
            return _failure("update", e)

        logger.info(f"[COUPON] Updated {coupon.code} (id={coupon_id}): {sorted(fields)}")
        return ServiceResult.ok(CouponResponse.model_validate(coupon))

    async def delete_coupon(self, coupon_id: int) -> ServiceResult:
        try:
            await self.store.delete_coupon(coupon_id)
        except StoreError as e:
            return _failure("delete", e)

        logger.info(f"[COUPON] Deleted id={coupon_id}")
        return ServiceResult.ok()

    async def toggle_coupon(self, coupon_id: int) -> ServiceResult:
        """Flip is_active."""
        try:
            coupon = await self.store.get_coupon(coupon_id)
            coupon = await self.store.update_coupon(
                coupon_id,
                {"is_active": not coupon.is_active, "updated_at": utcnow()},
            )
        except StoreError as e:
            return _failure("toggle", e)

        state = "activated" if coupon.is_active else "deactivated"
        logger.info(f"[COUPON] {coupon.code} {state}")
        return ServiceResult.ok(CouponResponse.model_validate(coupon), message=f"Coupon {state}")

    async def get_coupon_stats(self) -> ServiceResult:
        try:
            stats = await self.store.coupon_stats()
        except StoreError as e:
            return _failure("stats", e)
        return ServiceResult.ok(CouponStats(**stats))

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_coupon_settings(self) -> ServiceResult:
        try:
            coupon_settings = await self.store.get_settings()
        except StoreError as e:
            return _failure("load settings", e)

        if coupon_settings is None:
            return ServiceResult.ok(None, message="Coupon settings not configured; coupons are disabled")
        return ServiceResult.ok(CouponSettingsResponse.model_validate(coupon_settings))

    async def update_coupon_settings(self, payload: CouponSettingsUpdate) -> ServiceResult:
        fields = payload.model_dump(exclude_unset=True)
        fields["updated_at"] = utcnow()

        try:
            coupon_settings = await self.store.upsert_settings(fields)
        except StoreError as e:
            return _failure("save settings", e)

        logger.info(f"[COUPON] Settings updated: enabled={coupon_settings.is_enabled}")
        return ServiceResult.ok(CouponSettingsResponse.model_validate(coupon_settings))

    # ------------------------------------------------------------------
    # Validation / usage
    # ------------------------------------------------------------------

    async def validate_coupon(self, code: str, amount: Any, plan_id: int) -> CouponValidationResult:
        """
        Check whether `code` applies to a purchase and compute the discount.

        Read-only: no usage slot is consumed. Use it for checkout previews;
        finalize with redeem_coupon.
        """
        try:
            amount = to_decimal(amount)
            coupon_settings = await self.store.get_settings()
            if not coupons_enabled(coupon_settings):
                return rejection(amount, MSG_DISABLED)

            coupon = await self.store.find_active_by_code(code)
            result = evaluate_coupon(
                coupon,
                coupon_settings,
                amount,
                plan_id,
                currency_symbol=self.config.COUPON_CURRENCY_SYMBOL,
            )
        except Exception as e:
            logger.exception(f"[COUPON] Error validating {code!r}: {e}")
            return rejection(amount if isinstance(amount, Decimal) else Decimal("0"), MSG_ERROR)

        logger.debug(f"[COUPON] validate {code!r} plan={plan_id} amount={amount}: {result.message}")
        return result

    async def apply_coupon(self, coupon_id: int) -> ServiceResult:
        """
        Record one redemption: used_count += 1.

        Prefers the store's single-statement increment. When that primitive
        is unavailable, falls back to read-then-write, which can lose
        increments under concurrent calls.
        """
        try:
            try:
                coupon = await self.store.increment_usage(coupon_id)
            except AtomicIncrementUnavailable as e:
                logger.warning(
                    f"[COUPON] Atomic increment unavailable ({e.message}); "
                    f"using read-then-write for id={coupon_id}"
                )
                used_count = await self.store.read_used_count(coupon_id)
                coupon = await self.store.write_used_count(coupon_id, used_count + 1)
        except StoreError as e:
            return _failure("apply", e)

        logger.info(f"[COUPON] Applied {coupon.code}: used {_usage(coupon)}")
        return ServiceResult.ok(CouponResponse.model_validate(coupon))

    async def redeem_coupon(self, code: str, amount: Any, plan_id: int) -> CouponValidationResult:
        """
        Validate and consume a usage slot in one call.

        The slot is taken with a conditional UPDATE, so two checkouts racing
        for the last use cannot both succeed.
        """
        result = await self.validate_coupon(code, amount, plan_id)
        if not result.is_valid:
            return result

        try:
            coupon = await self.store.increment_usage_if_available(result.coupon.id)
        except StoreError as e:
            logger.error(f"[COUPON] Redeem {code!r} failed: {e.to_dict()}")
            return rejection(to_decimal(amount), MSG_ERROR)

        if coupon is None:
            logger.info(f"[COUPON] Redeem {code!r} lost the race for the last use")
            return rejection(to_decimal(amount), MSG_LIMIT_REACHED)

        logger.info(f"[COUPON] Redeemed {coupon.code}: used {_usage(coupon)}")
        return result.model_copy(update={"coupon": CouponResponse.model_validate(coupon)})
