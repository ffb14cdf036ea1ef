from gym_coupons.schemas.coupon import (
    CouponCreate,
    CouponResponse,
    CouponSettingsResponse,
    CouponSettingsUpdate,
    CouponStats,
    CouponUpdate,
    CouponValidateRequest,
    CouponValidationResult,
    DiscountType,
    ServiceResult,
    normalize_code,
)
