"""
Gym Coupons Exception Hierarchy

All exceptions include code, message, and details for audit trail and
debugging. Business-rule rejections during validation are NOT exceptions;
they are returned as a CouponValidationResult with is_valid=False.

Exception Hierarchy:
    GymCouponsError
    └── StoreError
        ├── CouponNotFoundError
        ├── DuplicateCouponCodeError
        └── AtomicIncrementUnavailable
"""
from typing import Optional, Dict, Any


class GymCouponsError(Exception):
    """
    Base exception for all Gym Coupons custom errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
    """

    default_code: str = "GYM_COUPONS_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# STORE ERRORS
# =============================================================================

class StoreError(GymCouponsError):
    """The backing store rejected or failed to execute a read/write."""
    default_code = "STORE_ERROR"
    default_severity = "P1"


class CouponNotFoundError(StoreError):
    """No coupon row matched the given id."""
    default_code = "COUPON_NOT_FOUND"
    default_severity = "P3"

    def __init__(self, coupon_id: int, **kwargs):
        details = kwargs.pop("details", {})
        details["coupon_id"] = coupon_id
        super().__init__("Coupon not found", details=details, **kwargs)


class DuplicateCouponCodeError(StoreError):
    """Unique constraint on coupons.code was violated."""
    default_code = "COUPON_CODE_EXISTS"
    default_severity = "P3"

    def __init__(self, code: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["code"] = code
        super().__init__("Coupon code already exists", details=details, **kwargs)


class AtomicIncrementUnavailable(StoreError):
    """The store cannot perform a single-statement counter increment."""
    default_code = "ATOMIC_INCREMENT_UNAVAILABLE"
    default_severity = "P2"


# =============================================================================
# EXCEPTION CATALOG
# =============================================================================

EXCEPTION_CATALOG = {
    "STORE_ERROR": {"class": StoreError, "severity": "P1", "http_status": 400},
    "COUPON_NOT_FOUND": {"class": CouponNotFoundError, "severity": "P3", "http_status": 404},
    "COUPON_CODE_EXISTS": {"class": DuplicateCouponCodeError, "severity": "P3", "http_status": 409},
    "ATOMIC_INCREMENT_UNAVAILABLE": {"class": AtomicIncrementUnavailable, "severity": "P2", "http_status": 400},
}


def http_status_for(code: Optional[str]) -> int:
    """Map an error code to the HTTP status the API reports it with."""
    entry = EXCEPTION_CATALOG.get(code or "")
    return entry["http_status"] if entry else 400
