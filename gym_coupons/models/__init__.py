from gym_coupons.models.coupon import Coupon, CouponSettings
