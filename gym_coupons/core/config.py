"""
Application configuration

SECURITY: Defaults are fail-safe for production.
- DEBUG defaults to False
- DATABASE_URL has no default (will fail if not set)
"""
import logging
from typing import List
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

DEFAULT_CORS_ORIGINS = ["http://localhost:3000"]


class Settings(BaseSettings):
    APP_NAME: str = "Gym Coupons"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    # Database - NO DEFAULT (will fail if not set)
    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600
    DB_CREATE_ALL: bool = False  # create missing tables on startup

    # JSON array in the environment; a comma-separated string when passed directly
    CORS_ORIGINS: List[str] = DEFAULT_CORS_ORIGINS

    # Coupon engine
    COUPON_CURRENCY_SYMBOL: str = "₹"
    # False forces the read-then-write usage counter (not concurrency safe)
    COUPON_ATOMIC_INCREMENT_ENABLED: bool = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            origins = [origin.strip() for origin in v.split(",") if origin.strip()]
            return origins or DEFAULT_CORS_ORIGINS
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper().strip()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return level

    @model_validator(mode="after")
    def validate_production_config(self):
        """Refuse to start production with debug output or a SQLite file."""
        if self.ENVIRONMENT != "production":
            return self

        errors = []
        if self.DEBUG:
            errors.append("DEBUG=True is forbidden in production")
        if self.DATABASE_URL.startswith("sqlite"):
            errors.append("SQLite DATABASE_URL detected in production")

        if errors:
            raise ValueError(
                "PRODUCTION CONFIG VIOLATIONS:\n" + "\n".join(f"  - {e}" for e in errors)
            )
        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
