"""
Coupon Store

Thin async repository over the coupons / coupon_settings tables. Every
SQLAlchemy failure leaves this module as a StoreError; callers never see
driver exceptions.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, NotSupportedError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gym_coupons.core.exceptions import (
    AtomicIncrementUnavailable,
    CouponNotFoundError,
    DuplicateCouponCodeError,
    StoreError,
)
from gym_coupons.models.coupon import Coupon, CouponSettings, utcnow
from gym_coupons.schemas.coupon import normalize_code

logger = logging.getLogger(__name__)


def _is_duplicate_code(error: IntegrityError) -> bool:
    """
    True only for a unique violation on coupons.code.

    SQLite: "UNIQUE constraint failed: coupons.code"
    Postgres: 'duplicate key value violates unique constraint "ix_coupons_code"'
    """
    message = str(error.orig).lower()
    is_unique = "unique constraint" in message or "duplicate key" in message
    return is_unique and "code" in message


class CouponStore:
    """
    Row-level access to coupons and the coupon settings singleton.

    Writes commit immediately; each call is one unit of work.
    """

    def __init__(self, db: AsyncSession, atomic_increment: bool = True):
        self.db = db
        self.atomic_increment = atomic_increment

    @asynccontextmanager
    async def _store_errors(self, action: str, **details):
        try:
            yield
        except StoreError:
            raise
        except IntegrityError as e:
            await self.db.rollback()
            if _is_duplicate_code(e):
                raise DuplicateCouponCodeError(details.get("code")) from e
            raise StoreError(
                f"Could not {action}: constraint violated",
                details={"error": str(e.orig), **details},
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                f"Could not {action}",
                details={"error": str(e), **details},
            ) from e

    async def _reload(self, coupon_id: int) -> Coupon:
        coupon = await self.db.get(Coupon, coupon_id, populate_existing=True)
        if coupon is None:
            raise CouponNotFoundError(coupon_id)
        return coupon

    # ------------------------------------------------------------------
    # Coupons
    # ------------------------------------------------------------------

    async def list_coupons(self) -> List[Coupon]:
        """All coupons, newest first."""
        async with self._store_errors("list coupons"):
            result = await self.db.execute(
                select(Coupon)
                .order_by(Coupon.created_at.desc(), Coupon.id.desc())
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    async def get_coupon(self, coupon_id: int) -> Coupon:
        async with self._store_errors("load coupon", coupon_id=coupon_id):
            return await self._reload(coupon_id)

    async def find_active_by_code(self, code: str) -> Optional[Coupon]:
        """Case-insensitive lookup restricted to active coupons."""
        async with self._store_errors("look up coupon", code=code):
            result = await self.db.execute(
                select(Coupon)
                .where(
                    func.upper(Coupon.code) == normalize_code(code),
                    Coupon.is_active == True,  # noqa: E712
                )
                .execution_options(populate_existing=True)
            )
            return result.scalars().first()

    async def insert_coupon(self, fields: Dict[str, Any]) -> Coupon:
        fields = dict(fields)
        fields.setdefault("used_count", 0)
        if fields.get("code"):
            fields["code"] = normalize_code(fields["code"])

        async with self._store_errors("create coupon", code=fields.get("code")):
            coupon = Coupon(**fields)
            self.db.add(coupon)
            await self.db.commit()
            return coupon

    async def update_coupon(self, coupon_id: int, fields: Dict[str, Any]) -> Coupon:
        if fields.get("code"):
            fields = {**fields, "code": normalize_code(fields["code"])}

        async with self._store_errors("update coupon", coupon_id=coupon_id, code=fields.get("code")):
            coupon = await self._reload(coupon_id)
            for key, value in fields.items():
                setattr(coupon, key, value)
            await self.db.commit()
            return coupon

    async def delete_coupon(self, coupon_id: int) -> None:
        """Hard delete."""
        async with self._store_errors("delete coupon", coupon_id=coupon_id):
            result = await self.db.execute(delete(Coupon).where(Coupon.id == coupon_id))
            if result.rowcount == 0:
                await self.db.rollback()
                raise CouponNotFoundError(coupon_id)
            await self.db.commit()

    async def coupon_stats(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Totals for the admin overview."""
        now = now or datetime.now(timezone.utc)
        async with self._store_errors("compute coupon stats"):
            result = await self.db.execute(
                select(
                    func.count(Coupon.id),
                    func.coalesce(func.sum(case((Coupon.is_active == True, 1), else_=0)), 0),  # noqa: E712
                    func.coalesce(func.sum(case((Coupon.valid_until < now, 1), else_=0)), 0),
                    func.coalesce(func.sum(Coupon.used_count), 0),
                )
            )
            total, active, expired, total_usage = result.one()
            return {
                "total": int(total),
                "active": int(active),
                "expired": int(expired),
                "total_usage": int(total_usage),
            }

    # ------------------------------------------------------------------
    # Usage counter
    # ------------------------------------------------------------------

    async def increment_usage(self, coupon_id: int) -> Coupon:
        """
        Atomically add one to used_count in a single UPDATE.

        Raises:
            AtomicIncrementUnavailable: disabled by config or rejected by the database
            CouponNotFoundError: no such coupon
        """
        if not self.atomic_increment:
            raise AtomicIncrementUnavailable("Atomic usage increment is disabled")

        stmt = (
            update(Coupon)
            .where(Coupon.id == coupon_id)
            .values(used_count=Coupon.used_count + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        try:
            async with self._store_errors("increment coupon usage", coupon_id=coupon_id):
                result = await self.db.execute(stmt)
                if result.rowcount == 0:
                    await self.db.rollback()
                    raise CouponNotFoundError(coupon_id)
                await self.db.commit()
                return await self._reload(coupon_id)
        except StoreError as e:
            if isinstance(e.__cause__, NotSupportedError):
                raise AtomicIncrementUnavailable(
                    "Database rejected atomic usage increment",
                    details=e.details,
                ) from e.__cause__
            raise

    async def increment_usage_if_available(self, coupon_id: int) -> Optional[Coupon]:
        """
        Consume one usage slot only if the coupon is active and under its limit.

        The limit check and the increment are one statement, so concurrent
        redemptions can never push used_count past usage_limit.

        Returns:
            The updated coupon, or None when no slot was left.
        """
        stmt = (
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                Coupon.is_active == True,  # noqa: E712
                or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
            )
            .values(used_count=Coupon.used_count + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        async with self._store_errors("redeem coupon", coupon_id=coupon_id):
            result = await self.db.execute(stmt)
            if result.rowcount == 0:
                await self.db.rollback()
                return None
            await self.db.commit()
            return await self._reload(coupon_id)

    async def read_used_count(self, coupon_id: int) -> int:
        async with self._store_errors("read coupon usage", coupon_id=coupon_id):
            result = await self.db.execute(
                select(Coupon.used_count).where(Coupon.id == coupon_id)
            )
            used_count = result.scalar_one_or_none()
            if used_count is None:
                raise CouponNotFoundError(coupon_id)
            return used_count

    async def write_used_count(self, coupon_id: int, used_count: int) -> Coupon:
        async with self._store_errors("write coupon usage", coupon_id=coupon_id):
            result = await self.db.execute(
                update(Coupon)
                .where(Coupon.id == coupon_id)
                .values(used_count=used_count, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                raise CouponNotFoundError(coupon_id)
            await self.db.commit()
            return await self._reload(coupon_id)

    # ------------------------------------------------------------------
    # Settings singleton
    # ------------------------------------------------------------------

    async def get_settings(self) -> Optional[CouponSettings]:
        async with self._store_errors("load coupon settings"):
            result = await self.db.execute(
                select(CouponSettings)
                .order_by(CouponSettings.id)
                .limit(1)
                .execution_options(populate_existing=True)
            )
            return result.scalars().first()

    async def upsert_settings(self, fields: Dict[str, Any]) -> CouponSettings:
        """Update the singleton, creating it on first write."""
        async with self._store_errors("save coupon settings"):
            coupon_settings = await self.get_settings()
            if coupon_settings is None:
                coupon_settings = CouponSettings(**fields)
                self.db.add(coupon_settings)
            else:
                for key, value in fields.items():
                    setattr(coupon_settings, key, value)
            await self.db.commit()
            return coupon_settings
