"""
Gym Coupons Backend
FastAPI application entry point
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from gym_coupons import __version__
from gym_coupons.api.routes import coupons
from gym_coupons.core.config import settings
from gym_coupons.core.database import AsyncSessionLocal, Base, engine
from gym_coupons.core.error_handler import register_error_handlers
from gym_coupons.core.logging import configure_logging

# Import models to register them with SQLAlchemy
from gym_coupons.models import Coupon, CouponSettings  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and, when enabled, create missing tables."""
    configure_logging()

    if settings.DB_CREATE_ALL:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured (DB_CREATE_ALL)")

    logger.info(f"{settings.APP_NAME} {__version__} started in {settings.ENVIRONMENT}")

    yield

    await engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    lifespan=lifespan,
    title="Gym Coupons API",
    description="""
## Gym Coupons API

Coupon engine for gym membership plans.

### Features
- **Validation**: preview a coupon against a plan purchase
- **Redemption**: validate and consume a use in one atomic step
- **Admin**: create, edit, toggle, delete coupons; global on/off switch
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Coupons", "description": "Coupon validation, redemption and administration"},
    ],
)

register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(coupons.router, prefix="/api/coupons", tags=["Coupons"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "Gym Coupons API",
        "version": __version__,
        "status": "operational",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with actual DB ping.
    Returns 503 if database is unreachable.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {type(e).__name__}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gym_coupons.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
