"""
API dependencies

Authentication is handled upstream by the identity provider; routes here
only wire the database session into the coupon engine.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gym_coupons.core.config import settings
from gym_coupons.core.database import get_db
from gym_coupons.services.coupon_service import CouponService
from gym_coupons.services.coupon_store import CouponStore


async def get_coupon_service(db: AsyncSession = Depends(get_db)) -> CouponService:
    store = CouponStore(db, atomic_increment=settings.COUPON_ATOMIC_INCREMENT_ENABLED)
    return CouponService(store, settings)
