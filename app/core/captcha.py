"""Captcha gate for the claim endpoint.

The gate runs before the rate limiter, so traffic that fails the challenge
never consumes a rate-limit slot. With no secret configured the gate is
disabled and every request passes.

Usage:
    @router.post("/claim", dependencies=[Depends(verify_captcha)])
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Header, Request

from app.adapters.captcha.base import AbstractCaptchaVerifier
from app.core.errors import CaptchaAppError

logger = logging.getLogger(__name__)

CAPTCHA_FAILED_MESSAGE = "Captcha verification failed, please try again"


class CaptchaGate:
    """Allow or deny a request based on a captcha token."""

    def __init__(self, secret: str, verifier: AbstractCaptchaVerifier | None = None) -> None:
        """Initialize the gate.

        Args:
            secret: Captcha secret; empty disables the gate.
            verifier: Verification service, required when ``secret`` is set.

        Raises:
            ValueError: If a secret is configured without a verifier.
        """
        if secret and verifier is None:
            raise ValueError("verifier is required when a captcha secret is configured")
        self._secret = secret
        self._verifier = verifier

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    async def check(self, token: str | None) -> bool:
        """Return True if the request may proceed."""
        if not self.enabled:
            return True
        return await self._verifier.verify_token(token or "")

    async def close(self) -> None:
        if self._verifier is not None:
            await self._verifier.close()


async def verify_captcha(
    request: Request,
    h_captcha_response: Annotated[str | None, Header(alias="h-captcha-response")] = None,
) -> None:
    """FastAPI dependency enforcing the captcha gate.

    Args:
        request: FastAPI request, used to reach the app-owned gate.
        h_captcha_response: Token from the ``h-captcha-response`` header.

    Raises:
        CaptchaAppError: 429 when verification fails.
    """
    gate: CaptchaGate = request.app.state.captcha_gate
    if not gate.enabled:
        logger.debug("captcha.skipped", extra={"reason": "secret_not_configured"})
        return

    if await gate.check(h_captcha_response):
        logger.info("captcha.passed")
        return

    logger.warning("captcha.failed", extra={"token_present": bool(h_captcha_response)})
    raise CaptchaAppError(code="captcha_failed", message=CAPTCHA_FAILED_MESSAGE)
