"""
Coupon System Models

Percentage/fixed discounts with usage limits, validity windows and plan
restrictions, plus the single-row global coupon settings.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text
)
from sqlalchemy.dialects.postgresql import JSONB

from gym_coupons.core.database import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow():
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Coupon(Base):
    """Individual coupon codes."""
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("used_count >= 0", name="ck_coupons_used_count_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Always stored upper-cased
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False, default="")
    description = Column(Text)

    # 'percentage' or 'fixed'
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)

    # Constraints
    min_amount = Column(Numeric(10, 2))
    max_discount = Column(Numeric(10, 2))  # Cap for percentage discounts

    # Usage limits
    usage_limit = Column(Integer)  # NULL = unlimited
    used_count = Column(Integer, nullable=False, default=0)

    # Validity
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    valid_from = Column(DateTime(timezone=True))
    valid_until = Column(DateTime(timezone=True))

    # Plan restrictions (empty = all plans)
    applicable_plans = Column(JSONType, default=list)

    created_by = Column(Integer)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Coupon id={self.id} code={self.code!r} used={self.used_count}/{self.usage_limit}>"


class CouponSettings(Base):
    """Global coupon switch. Exactly one row is expected."""
    __tablename__ = "coupon_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    is_enabled = Column(Boolean, nullable=False, default=True)

    # Reserved: stored and editable, not consulted by validation
    allow_stacking = Column(Boolean, nullable=False, default=False)
    max_discount_percentage = Column(Numeric(5, 2))

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
