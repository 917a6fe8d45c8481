"""Client network address resolution behind trusted reverse proxies.

Each trusted proxy appends the address it saw to ``X-Forwarded-For``. With
``proxy_count`` trusted hops, the entry ``proxy_count`` positions from the
end was written by the outermost trusted proxy; anything before it may have
been forged by the client.
"""

from __future__ import annotations

import logging

from fastapi import Request

logger = logging.getLogger(__name__)

FORWARDED_FOR_HEADER = "X-Forwarded-For"
UNKNOWN_CLIENT = "unknown"


def _host_from_remote_addr(remote_addr: str) -> str:
    """Strip the port from ``host:port`` / ``[v6]:port``; return the raw value otherwise."""

    if remote_addr.startswith("["):
        end = remote_addr.find("]")
        if end != -1 and remote_addr[end + 1 : end + 2] == ":":
            return remote_addr[1:end]
        return remote_addr

    host, sep, port = remote_addr.rpartition(":")
    # A bare IPv6 address has several colons and no port to strip
    if not sep or not host or ":" in host:
        return remote_addr
    return host


def resolve_client_ip(proxy_count: int, forwarded_for: str | None, remote_addr: str) -> str:
    """Pick the client address that the trusted proxy chain vouches for.

    Args:
        proxy_count: Number of trusted reverse proxies in front of the service.
        forwarded_for: Raw ``X-Forwarded-For`` header value, if any.
        remote_addr: Socket peer address, optionally with a port.

    Returns:
        The resolved client address.

    Examples:
        >>> resolve_client_ip(2, "1.1.1.1, 2.2.2.2, 3.3.3.3", "9.9.9.9:1234")
        '2.2.2.2'
        >>> resolve_client_ip(0, "1.1.1.1", "9.9.9.9:1234")
        '9.9.9.9'
    """

    if proxy_count > 0 and forwarded_for:
        parts = [part.strip() for part in forwarded_for.split(",")]
        return parts[max(0, len(parts) - proxy_count)]

    return _host_from_remote_addr(remote_addr)


def client_ip_from_request(request: Request, proxy_count: int) -> str:
    """Resolve the client address of a FastAPI request.

    Without a peer address (e.g. a unix socket listener) and without a
    trusted forwarded entry, every caller resolves to ``UNKNOWN_CLIENT`` and
    shares one rate-limit slot.
    """

    if request.client is None:
        remote_addr = UNKNOWN_CLIENT
    elif ":" in request.client.host:
        remote_addr = f"[{request.client.host}]:{request.client.port}"
    else:
        remote_addr = f"{request.client.host}:{request.client.port}"
    client_ip = resolve_client_ip(proxy_count, request.headers.get(FORWARDED_FOR_HEADER), remote_addr)
    if client_ip == UNKNOWN_CLIENT:
        logger.warning(
            "client_ip.unresolved",
            extra={"proxy_count": proxy_count, "path": request.url.path},
        )
    return client_ip
