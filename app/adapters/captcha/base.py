"""Captcha verifier interface.

The captcha gate depends on this abstraction so the hCaptcha backend can be
replaced (or faked in tests) without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCaptchaVerifier(ABC):
    """Interface for captcha verification services."""

    @abstractmethod
    async def verify_token(self, token: str) -> bool:
        """Return True when the service accepts the client-supplied token."""
        raise NotImplementedError

    async def close(self) -> None:
        return None
