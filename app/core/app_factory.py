"""Application factory for the faucet API.

Builds the admission components once per process (key store, rate limiter,
captcha gate) together with the ledger client and payout service, and
attaches them to ``app.state`` so request handlers share one instance.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.adapters.captcha.hcaptcha import HCaptchaVerifier
from app.adapters.ledger.base import AbstractLedgerClient
from app.adapters.ledger.factory import create_ledger_client
from app.api.routes import claim_router, health_router
from app.core.captcha import CaptchaGate
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.rate_limit import RateLimiter
from app.services.payout_service import PayoutService
from app.utils.expiring_store import ExpiringKeyStore

logger = logging.getLogger(__name__)


def build_captcha_gate(app_settings: Settings) -> CaptchaGate:
    """Create the captcha gate; disabled when no secret is configured."""
    cfg = app_settings.captcha
    if not cfg.secret:
        return CaptchaGate(secret="")
    verifier = HCaptchaVerifier(
        secret=cfg.secret,
        site_key=cfg.site_key,
        verify_url=cfg.verify_url,
        timeout_seconds=cfg.timeout_seconds,
    )
    return CaptchaGate(secret=cfg.secret, verifier=verifier)


def create_app(
    app_settings: Settings | None = None,
    *,
    ledger: AbstractLedgerClient | None = None,
    captcha_gate: CaptchaGate | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the global settings.
        ledger: Ledger client override (tests inject fakes here).
        captcha_gate: Captcha gate override.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    ledger_client = ledger or create_ledger_client(cfg.ledger)
    gate = captcha_gate or build_captcha_gate(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "faucet.started",
            extra={
                "network": cfg.ledger.network,
                "interval_minutes": cfg.faucet.interval_minutes,
                "proxy_count": cfg.faucet.proxy_count,
                "captcha_enabled": gate.enabled,
            },
        )
        yield
        await ledger_client.close()
        await gate.close()

    app = FastAPI(
        title="Faucet API",
        description=(
            "Public faucet that sends a fixed payout to a claimant address. "
            "Claims are protected by hCaptcha, a per-address and per-IP rate "
            "limit, and a duplicate-claim check against the ledger nonce."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    store = ExpiringKeyStore()
    app.state.settings = cfg
    app.state.key_store = store
    app.state.captcha_gate = gate
    app.state.rate_limiter = RateLimiter(
        store,
        ledger_client,
        ttl_seconds=cfg.faucet.interval_minutes * 60,
        proxy_count=cfg.faucet.proxy_count,
    )
    app.state.payout_service = PayoutService(ledger_client, cfg.faucet.payout)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(claim_router)
    app.include_router(health_router)

    return app
