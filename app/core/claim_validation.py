"""Claim request parsing and validation.

Turns the raw claim request body into a claimant address. Every failure is
raised as ``MalformedRequestError`` carrying the HTTP status and message
the client sees, before any admission state is touched.
"""

from __future__ import annotations

import json
import logging
import re

from fastapi import Request

from app.core.errors import MalformedRequestError

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"(0x|0X)?[0-9a-fA-F]{40}")
_ALLOWED_FIELDS = {"address"}


def is_hex_address(value: str) -> bool:
    """Return True for a 20-byte hex address with an optional ``0x`` prefix."""

    return _ADDRESS_RE.fullmatch(value) is not None


def canonical_address(value: str) -> str:
    """Return the ``0x``-prefixed lower-case spelling of a hex address.

    The result is the claim identity, so every spelling of one account must
    map to the same key.
    """

    return "0x" + value[-40:].lower()


def _malformed(status_code: int, code: str, message: str, **details) -> MalformedRequestError:
    return MalformedRequestError(
        code=code,
        message=message,
        details=details or None,
        status_code=status_code,
    )


async def read_request_body_limited(request: Request, max_bytes: int) -> bytes:
    """Read the request body in chunks enforcing ``max_bytes``.

    Raises:
        MalformedRequestError: 413 if the body exceeds the limit.
    """
    message = f"Request body must not be larger than {max_bytes} bytes"

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_bytes:
        logger.warning(
            "claim_validation.rejected_by_header",
            extra={"content_length": int(content_length), "max_bytes": max_bytes},
        )
        raise _malformed(413, "request_too_large", message, max_bytes=max_bytes)

    size = 0
    chunks: list[bytes] = []
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "claim_validation.rejected_by_stream",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise _malformed(413, "request_too_large", message, max_bytes=max_bytes)
        chunks.append(chunk)

    return b"".join(chunks)


def parse_claim_address(body: bytes) -> str:
    """Extract and validate the claimant address from a JSON body.

    Args:
        body: Raw request body.

    Returns:
        The claimant address in canonical form (see ``canonical_address``).

    Raises:
        MalformedRequestError: 400 for empty, badly formed or invalid bodies.
    """
    if not body.strip():
        raise _malformed(400, "empty_body", "Request body must not be empty")

    try:
        payload = json.loads(body)
    except UnicodeDecodeError as exc:
        raise _malformed(400, "invalid_encoding", "Request body must be UTF-8 encoded JSON") from exc
    except json.JSONDecodeError as exc:
        raise _malformed(
            400,
            "invalid_json",
            f"Request body contains badly-formed JSON (at position {exc.pos})",
            position=exc.pos,
        ) from exc

    if not isinstance(payload, dict):
        raise _malformed(400, "invalid_json", "Request body must be a JSON object")

    unknown = sorted(set(payload) - _ALLOWED_FIELDS)
    if unknown:
        raise _malformed(400, "unknown_field", f"Request body contains unknown field {unknown[0]!r}")

    address = payload.get("address")
    if not isinstance(address, str):
        raise _malformed(400, "invalid_address", "invalid address")
    if not is_hex_address(address):
        raise _malformed(400, "invalid_address", "invalid address")

    return canonical_address(address)


async def read_claim_address(request: Request, *, max_body_bytes: int) -> str:
    """Read the claimant address from a claim request.

    Raises:
        MalformedRequestError: 415 for a non-JSON content type, 413 for an
            oversized body, 400 for anything else that is not a valid claim.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() != "application/json":
        raise _malformed(415, "unsupported_media_type", "Content-Type header is not application/json")

    body = await read_request_body_limited(request, max_body_bytes)
    return parse_claim_address(body)
