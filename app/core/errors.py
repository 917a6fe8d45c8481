"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses. Every error carries
the HTTP status it is rendered with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability.

    Fields are optional to keep shapes consistent across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: float
    max_bytes: int
    position: int
    rpc_method: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message returned to the client.
        details: Optional structured details for debugging/observability.
        status_code: HTTP status used when rendering the error.
    """

    code: str
    message: str
    details: ErrorDetails | None = None
    status_code: int = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


@dataclass
class MalformedRequestError(AppError):
    """Raised when the claim request cannot be parsed or is invalid."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a live rate-limit record exists for the claimant or client."""

    status_code: int = 429


@dataclass
class DuplicateClaimError(AppError):
    """Raised when the ledger nonce suggests a repeated submission."""

    status_code: int = 429


@dataclass
class CaptchaAppError(AppError):
    """Raised when captcha verification fails."""

    status_code: int = 429


@dataclass
class LedgerAppError(AppError):
    """Raised when the ledger node cannot be reached or returns garbage."""

    status_code: int = 503
