"""Captcha verification adapters."""

from app.adapters.captcha.base import AbstractCaptchaVerifier
from app.adapters.captcha.hcaptcha import HCaptchaVerifier

__all__ = ["AbstractCaptchaVerifier", "HCaptchaVerifier"]
