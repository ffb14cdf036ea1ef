"""
Coupon schemas
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(code: Optional[str]) -> Optional[str]:
    """Codes are case-insensitive: store and compare them upper-cased."""
    if code is None:
        return None
    return code.strip().upper()


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = ""
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(..., ge=0)
    min_amount: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    usage_limit: Optional[int] = Field(None, ge=0)
    used_count: int = Field(0, ge=0)
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    applicable_plans: List[int] = Field(default_factory=list)
    created_by: Optional[int] = None

    @field_validator("code")
    @classmethod
    def upper_case_code(cls, v: str) -> str:
        code = normalize_code(v)
        if not code:
            raise ValueError("code is required")
        return code

    @field_validator("applicable_plans", mode="before")
    @classmethod
    def none_means_all_plans(cls, v):
        return [] if v is None else v

    class Config:
        use_enum_values = True


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = None
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    min_amount: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    usage_limit: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    applicable_plans: Optional[List[int]] = None

    @field_validator("code", "name", "discount_type", "discount_value", "is_active")
    @classmethod
    def reject_null(cls, v, info):
        # These columns are NOT NULL; omit the field to leave it unchanged
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("code")
    @classmethod
    def upper_case_code(cls, v: Optional[str]) -> Optional[str]:
        return normalize_code(v)

    class Config:
        use_enum_values = True


class CouponResponse(BaseModel):
    id: int
    code: str
    name: Optional[str] = None
    description: Optional[str] = None
    discount_type: str
    discount_value: float
    min_amount: Optional[float] = None
    max_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    is_active: bool
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    applicable_plans: List[int] = Field(default_factory=list)
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("applicable_plans", mode="before")
    @classmethod
    def none_means_all_plans(cls, v):
        return [] if v is None else v

    @field_validator("used_count", mode="before")
    @classmethod
    def unset_count_is_zero(cls, v):
        return 0 if v is None else v

    class Config:
        from_attributes = True


class CouponSettingsResponse(BaseModel):
    id: int
    is_enabled: bool
    allow_stacking: bool = False
    max_discount_percentage: Optional[float] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CouponSettingsUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    allow_stacking: Optional[bool] = None
    max_discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)

    @field_validator("is_enabled", "allow_stacking")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class CouponValidateRequest(BaseModel):
    code: str
    amount: Decimal = Field(..., ge=0)
    plan_id: int


class CouponValidationResult(BaseModel):
    """Outcome of a validation; never persisted."""
    is_valid: bool
    coupon: Optional[CouponResponse] = None
    discount_amount: Decimal = Decimal("0")
    final_amount: Decimal
    message: str

    @field_serializer("discount_amount", "final_amount")
    def money_as_number(self, value: Decimal) -> float:
        return float(value)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CouponStats(BaseModel):
    total: int
    active: int
    expired: int
    total_usage: int


class ServiceResult(BaseModel):
    """Envelope returned by every admin/redemption operation."""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error_code: Optional[str] = Field(None, exclude=True)

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "ServiceResult":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str, error_code: Optional[str] = None) -> "ServiceResult":
        return cls(success=False, message=message, error_code=error_code)
