"""hCaptcha verifier adapter."""

from __future__ import annotations

import logging

import httpx

from app.adapters.captcha.base import AbstractCaptchaVerifier

logger = logging.getLogger(__name__)


class HCaptchaVerifier(AbstractCaptchaVerifier):
    """Verify tokens against the hCaptcha ``siteverify`` endpoint.

    Any transport error or unreadable reply counts as a failed verification.
    """

    def __init__(
        self,
        secret: str,
        site_key: str = "",
        verify_url: str = "https://api.hcaptcha.com/siteverify",
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret = secret
        self._site_key = site_key
        self._verify_url = verify_url
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def verify_token(self, token: str) -> bool:
        if not token:
            return False

        form = {"secret": self._secret, "response": token}
        if self._site_key:
            form["sitekey"] = self._site_key

        try:
            response = await self._client.post(self._verify_url, data=form)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            logger.warning("captcha.verify_unavailable", extra={"error_type": type(exc).__name__})
            return False
        except ValueError:
            logger.warning("captcha.verify_invalid_response")
            return False

        success = isinstance(body, dict) and body.get("success") is True
        if not success:
            logger.info(
                "captcha.verify_rejected",
                extra={"error_codes": body.get("error-codes") if isinstance(body, dict) else None},
            )
        return success
