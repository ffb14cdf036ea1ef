import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from gym_coupons.core.error_handler import (
    GENERIC_STORE_MESSAGE,
    register_error_handlers,
    sanitize_error_message,
)
from gym_coupons.core.exceptions import CouponNotFoundError, StoreError


def _app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/missing")
    async def missing():
        raise CouponNotFoundError(7)

    @app.get("/driver")
    async def driver():
        raise StoreError("sqlite3.OperationalError: database is locked")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("password=hunter2")

    return app


def test_business_messages_pass_through():
    assert sanitize_error_message(CouponNotFoundError(1)) == "Coupon not found"


def test_driver_details_are_hidden():
    assert sanitize_error_message("asyncpg.exceptions.UniqueViolationError") == GENERIC_STORE_MESSAGE


@pytest.mark.asyncio
async def test_structured_errors_use_catalog_status():
    transport = ASGITransport(app=_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/missing")
        assert resp.status_code == 404
        assert resp.json() == {"error": "COUPON_NOT_FOUND", "message": "Coupon not found"}

        resp = await client.get("/driver")
        assert resp.status_code == 400
        assert resp.json()["message"] == GENERIC_STORE_MESSAGE


@pytest.mark.asyncio
async def test_unhandled_errors_return_generic_500():
    transport = ASGITransport(app=_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "internal_error"
    assert "hunter2" not in body["message"]
    assert "error_id" in body
