"""
Coupon API Routes

Public validation/redemption endpoints + Admin CRUD.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from gym_coupons.api.deps import get_coupon_service
from gym_coupons.core.exceptions import GymCouponsError
from gym_coupons.schemas.coupon import (
    CouponCreate,
    CouponSettingsUpdate,
    CouponUpdate,
    CouponValidateRequest,
    CouponValidationResult,
    ServiceResult,
)
from gym_coupons.services.coupon_service import CouponService

logger = logging.getLogger(__name__)
router = APIRouter()


def _unwrap(result: ServiceResult) -> ServiceResult:
    """
    Raise a failed ServiceResult as a GymCouponsError.

    The registered error handler renders it as {error, message} with the
    status from EXCEPTION_CATALOG (404 missing coupon, 409 duplicate code).
    """
    if not result.success:
        raise GymCouponsError(result.message, code=result.error_code)
    return result


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@router.post("/validate", response_model=CouponValidationResult)
async def validate_coupon(
    payload: CouponValidateRequest,
    service: CouponService = Depends(get_coupon_service),
):
    """
    Preview a coupon against a plan purchase.

    Always 200; check `isValid`. No usage slot is consumed.
    """
    return await service.validate_coupon(payload.code, payload.amount, payload.plan_id)


@router.post("/redeem", response_model=CouponValidationResult)
async def redeem_coupon(
    payload: CouponValidateRequest,
    service: CouponService = Depends(get_coupon_service),
):
    """
    Validate and consume one use of the coupon.

    Call this when the purchase is finalized.
    """
    result = await service.redeem_coupon(payload.code, payload.amount, payload.plan_id)
    if not result.is_valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return result


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================

@router.get("/admin/settings", response_model=ServiceResult)
async def get_coupon_settings(service: CouponService = Depends(get_coupon_service)):
    """Global coupon switch."""
    return _unwrap(await service.get_coupon_settings())


@router.put("/admin/settings", response_model=ServiceResult)
async def update_coupon_settings(
    payload: CouponSettingsUpdate,
    service: CouponService = Depends(get_coupon_service),
):
    return _unwrap(await service.update_coupon_settings(payload))


@router.get("/admin/list", response_model=ServiceResult)
async def list_coupons(service: CouponService = Depends(get_coupon_service)):
    """List all coupons, newest first."""
    return _unwrap(await service.list_coupons())


@router.get("/admin/stats", response_model=ServiceResult)
async def coupon_stats(service: CouponService = Depends(get_coupon_service)):
    return _unwrap(await service.get_coupon_stats())


@router.post("/admin/create", response_model=ServiceResult, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    payload: CouponCreate,
    service: CouponService = Depends(get_coupon_service),
):
    """Create a new coupon."""
    return _unwrap(await service.create_coupon(payload))


@router.patch("/admin/{coupon_id}", response_model=ServiceResult)
async def update_coupon(
    coupon_id: int,
    payload: CouponUpdate,
    service: CouponService = Depends(get_coupon_service),
):
    return _unwrap(await service.update_coupon(coupon_id, payload))


@router.patch("/admin/{coupon_id}/toggle", response_model=ServiceResult)
async def toggle_coupon(
    coupon_id: int,
    service: CouponService = Depends(get_coupon_service),
):
    """Toggle coupon active status."""
    return _unwrap(await service.toggle_coupon(coupon_id))


@router.post("/admin/{coupon_id}/apply", response_model=ServiceResult)
async def apply_coupon(
    coupon_id: int,
    service: CouponService = Depends(get_coupon_service),
):
    """Record one use of a coupon (used_count += 1)."""
    return _unwrap(await service.apply_coupon(coupon_id))


@router.delete("/admin/{coupon_id}", response_model=ServiceResult)
async def delete_coupon(
    coupon_id: int,
    service: CouponService = Depends(get_coupon_service),
):
    """Delete a coupon."""
    return _unwrap(await service.delete_coupon(coupon_id))
