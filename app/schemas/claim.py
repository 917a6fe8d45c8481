"""Pydantic schemas for the faucet API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ClaimResponse(BaseModel):
    """Body of every claim response, success or failure."""

    message: str = Field(..., description="Transaction hash on success, reason otherwise.")


class InfoResponse(BaseModel):
    """Public faucet configuration shown by the frontend."""

    account: str = Field(..., description="Account that funds payouts.")
    network: str = Field(..., description="Blockchain network identifier.")
    symbol: str = Field(..., description="Currency symbol.")
    payout: str = Field(..., description="Amount sent per successful claim.")
    hcaptcha_sitekey: str = Field(
        "",
        description="hCaptcha site key; empty when captcha is disabled.",
    )
