"""Payout service: sends the configured amount to a claimant."""

from __future__ import annotations

import logging
from decimal import Decimal

from fastapi import status
from fastapi.responses import JSONResponse

from app.adapters.ledger.base import AbstractLedgerClient
from app.core.errors import LedgerAppError

logger = logging.getLogger(__name__)

WEI_PER_UNIT = 10**18


def to_wei(amount: float | str | Decimal) -> int:
    """Convert a whole-unit amount to the ledger's smallest unit.

    Examples:
        >>> to_wei(1)
        1000000000000000000
        >>> to_wei("0.05")
        50000000000000000
    """
    return int(Decimal(str(amount)) * WEI_PER_UNIT)


class PayoutService:
    """The faucet's protected handler.

    Returns an explicit response instead of raising, so the rate limiter can
    decide from the status code whether to keep the claimant's reservation.
    """

    def __init__(self, ledger: AbstractLedgerClient, payout: float) -> None:
        if payout <= 0:
            raise ValueError("payout must be > 0")
        self._ledger = ledger
        self._amount_wei = to_wei(payout)

    @property
    def amount_wei(self) -> int:
        return self._amount_wei

    async def claim(self, address: str) -> JSONResponse:
        """Transfer the payout to ``address`` and report the outcome."""

        try:
            tx_hash = await self._ledger.transfer(address, self._amount_wei)
        except LedgerAppError as exc:
            logger.error(
                "payout.failed",
                extra={"error_code": exc.code, "error_message": exc.message},
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"message": exc.message},
            )

        logger.info("payout.sent", extra={"tx_hash": tx_hash, "amount_wei": self._amount_wei})
        return JSONResponse(status_code=status.HTTP_200_OK, content={"message": f"Txhash: {tx_hash}"})
