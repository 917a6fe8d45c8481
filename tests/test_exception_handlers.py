"""Tests for global exception handlers.

Every error must reach the client as ``{"message": ...}`` with the status
carried by the error, and unexpected failures must not leak internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    CaptchaAppError,
    DuplicateClaimError,
    LedgerAppError,
    MalformedRequestError,
    RateLimitExceededError,
)
from app.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (MalformedRequestError(code="invalid_address", message="invalid address"), 400),
            (
                MalformedRequestError(code="unsupported_media_type", message="not json", status_code=415),
                415,
            ),
            (DuplicateClaimError(code="duplicate_claim", message="Please do not make repeated requests."), 429),
            (CaptchaAppError(code="captcha_failed", message="Captcha verification failed"), 429),
            (LedgerAppError(code="ledger_unavailable", message="Ledger down"), 503),
        ],
    )
    def test_renders_message_with_error_status(
        self, client: TestClient, app_with_handlers: FastAPI, error: AppError, status: int
    ):
        @app_with_handlers.get("/boom")
        async def boom():
            raise error

        response = client.get("/boom")

        assert response.status_code == status
        assert response.json() == {"message": error.message}

    def test_rate_limit_error_sets_retry_after(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/limited")
        async def limited():
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message="You have exceeded the rate limit. Please wait 42s before you try again",
                details={"retry_after": 42},
            )

        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.json()["message"].endswith("Please wait 42s before you try again")

    def test_error_details_are_not_sent_to_client(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/details")
        async def details():
            raise LedgerAppError(
                code="ledger_rpc_error",
                message="Ledger node rejected the request",
                details={"rpc_method": "eth_sendTransaction"},
            )

        response = client.get("/details")

        assert "eth_sendTransaction" not in response.text


class TestGeneralExceptionHandler:
    """Fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_hides_internals(self):
        request = AsyncMock()
        request.url.path = "/api/claim"
        request.method = "POST"

        exc = RuntimeError("Unexpected error: keystore locked")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data == {"message": "Internal Server Error"}
        assert "keystore" not in response.body.decode()
        assert "Traceback" not in response.body.decode()


def test_multiple_handler_setups_does_not_fail():
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
