"""Claim rate limiting with duplicate-claim detection.

A claim is admitted at most once per TTL per claimant address and per client
network address. Admission works in three phases:

1. Reservation: both keys are checked and written under one lock, so two
   concurrent claims for the same address cannot both pass the check.
2. Nonce check: the claimant's pending transaction count is read from the
   ledger. If it equals the count recorded after the previous successful
   payout, that payout is still unconfirmed and the claim is treated as a
   repeated submission.
3. Reconciliation: the payout handler runs and its response status decides
   whether the reservation stays (success, nonce recorded) or is rolled back.

Keys prefixed with ``nonce-`` are reserved for nonce records; claimant and
client addresses never take that form.

When the ledger cannot be queried the reservation is rolled back and the
request fails with 503 rather than proceeding unchecked.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from fastapi import Request, Response, status

from app.adapters.ledger.base import AbstractLedgerClient
from app.core.errors import DuplicateClaimError, LedgerAppError, RateLimitExceededError
from app.utils.expiring_store import ExpiringKeyStore

logger = logging.getLogger(__name__)

NONCE_KEY_PREFIX = "nonce-"
DUPLICATE_CLAIM_MESSAGE = "Please do not make repeated requests."

ClaimHandler = Callable[[], Awaitable[Response]]


class AdmissionState(str, Enum):
    """Where a claim ended up in the admission flow (used in logs)."""

    ADDRESS_LIMITED = "address_limited"
    IP_LIMITED = "ip_limited"
    NONCE_FLAGGED = "nonce_flagged"
    ADMITTED = "admitted"
    PASSED_TO_HANDLER = "passed_to_handler"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class Reservation:
    """Keys written for one admitted claim."""

    address: str
    client_ip: str


def nonce_key(address: str) -> str:
    return NONCE_KEY_PREFIX + address


def format_wait(seconds: float) -> str:
    """Format a wait time rounded to whole seconds, e.g. ``42s`` or ``1h2m5s``.

    Examples:
        >>> format_wait(41.6)
        '42s'
        >>> format_wait(3725)
        '1h2m5s'
    """
    total = max(0, int(seconds + 0.5))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def _hash_limiter_key(key: str) -> str:
    """Hash a limiter key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class RateLimiter:
    """Admission control for claims, keyed by claimant and client address.

    The store is owned by the limiter's creator (one per process) and is the
    only shared mutable state. Network calls happen outside the lock.
    """

    def __init__(
        self,
        store: ExpiringKeyStore,
        ledger: AbstractLedgerClient,
        *,
        ttl_seconds: float,
        proxy_count: int = 0,
        success_status: int = status.HTTP_200_OK,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Key store holding reservations and nonce records.
            ledger: Client used to read pending sequence numbers.
            ttl_seconds: Reservation lifetime; 0 or less disables the limiter.
            proxy_count: Number of trusted reverse proxies (client address resolution).
            success_status: Handler status that commits a reservation.
        """
        self._store = store
        self._ledger = ledger
        self._ttl = ttl_seconds
        self.proxy_count = proxy_count
        self._success_status = success_status
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    def _limited(self, key: str, state: AdmissionState) -> RateLimitExceededError | None:
        entry = self._store.get_with_ttl(key)
        if entry is None:
            return None

        remaining = entry[1] or 0.0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "state": state.value,
                "key_hash": _hash_limiter_key(key),
                "retry_after_s": round(remaining),
            },
        )
        return RateLimitExceededError(
            code="rate_limit_exceeded",
            message=(
                "You have exceeded the rate limit. "
                f"Please wait {format_wait(remaining)} before you try again"
            ),
            details={"retry_after": max(0, round(remaining))},
        )

    def reserve(self, address: str, client_ip: str) -> Reservation:
        """Atomically check both keys and, if free, reserve them for the TTL.

        Raises:
            RateLimitExceededError: If either key holds a live reservation.
        """
        with self._lock:
            error = self._limited(address, AdmissionState.ADDRESS_LIMITED) or self._limited(
                client_ip, AdmissionState.IP_LIMITED
            )
            if error is None:
                self._store.put(address, True, self._ttl)
                self._store.put(client_ip, True, self._ttl)

        if error is not None:
            raise error

        logger.info(
            "rate_limit.admitted",
            extra={
                "state": AdmissionState.ADMITTED.value,
                "address_hash": _hash_limiter_key(address),
                "ip_hash": _hash_limiter_key(client_ip),
                "ttl_s": self._ttl,
            },
        )
        return Reservation(address=address, client_ip=client_ip)

    def release(self, reservation: Reservation, *, reason: str) -> None:
        """Drop both reservation keys so the claimant can retry immediately."""
        self._store.remove(reservation.address)
        self._store.remove(reservation.client_ip)
        logger.info(
            "rate_limit.rolled_back",
            extra={
                "state": AdmissionState.ROLLED_BACK.value,
                "reason": reason,
                "address_hash": _hash_limiter_key(reservation.address),
            },
        )

    def is_duplicate(self, address: str, pending_nonce: int) -> bool:
        """Return True if ``pending_nonce`` equals the last committed nonce."""
        cached = self._store.get(nonce_key(address))
        return cached is not None and cached == pending_nonce

    def commit(self, reservation: Reservation, pending_nonce: int) -> None:
        """Record the nonce observed for a successful claim."""
        self._store.put(nonce_key(reservation.address), pending_nonce)
        logger.info(
            "rate_limit.committed",
            extra={
                "state": AdmissionState.COMMITTED.value,
                "address_hash": _hash_limiter_key(reservation.address),
                "ip_hash": _hash_limiter_key(reservation.client_ip),
                "nonce": pending_nonce,
            },
        )

    async def check(self, address: str, client_ip: str, handler: ClaimHandler) -> Response:
        """Run ``handler`` if the claim is admitted and reconcile state afterwards.

        Args:
            address: Claimant address.
            client_ip: Resolved client network address.
            handler: Protected handler returning the response to send.

        Returns:
            The handler's response.

        Raises:
            RateLimitExceededError: A live reservation exists for either key.
            DuplicateClaimError: The pending nonce matches the last committed one.
            LedgerAppError: The ledger could not be queried.
        """
        if not self.enabled:
            return await handler()

        reservation = self.reserve(address, client_ip)

        try:
            pending_nonce = await self._ledger.pending_nonce(address)
        except LedgerAppError:
            self.release(reservation, reason="ledger_unavailable")
            raise

        if self.is_duplicate(address, pending_nonce):
            logger.info(
                "rate_limit.duplicate_claim",
                extra={
                    "state": AdmissionState.NONCE_FLAGGED.value,
                    "address_hash": _hash_limiter_key(address),
                    "nonce": pending_nonce,
                },
            )
            self.release(reservation, reason="duplicate_nonce")
            raise DuplicateClaimError(code="duplicate_claim", message=DUPLICATE_CLAIM_MESSAGE)

        logger.debug(
            "rate_limit.passed_to_handler",
            extra={"state": AdmissionState.PASSED_TO_HANDLER.value, "nonce": pending_nonce},
        )
        try:
            response = await handler()
        except Exception:
            self.release(reservation, reason="handler_error")
            raise

        if response.status_code != self._success_status:
            self.release(reservation, reason=f"handler_status_{response.status_code}")
            return response

        self.commit(reservation, pending_nonce)
        return response


def get_rate_limiter(request: Request) -> RateLimiter:
    """FastAPI dependency returning the app-owned limiter."""

    return request.app.state.rate_limiter
