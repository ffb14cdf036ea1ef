from gym_coupons.services.coupon_service import CouponService
from gym_coupons.services.coupon_store import CouponStore
