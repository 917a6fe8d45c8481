"""JSON-RPC ledger client adapter (Ethereum-compatible nodes)."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from app.adapters.ledger.base import AbstractLedgerClient
from app.core.errors import LedgerAppError

logger = logging.getLogger(__name__)


class JsonRpcLedgerClient(AbstractLedgerClient):
    """Client for an Ethereum-style JSON-RPC node.

    Payouts are sent with ``eth_sendTransaction`` from an account the node
    manages, so no key material lives in this process.
    """

    def __init__(
        self,
        provider: str,
        faucet_address: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async HTTP client.

        Args:
            provider: JSON-RPC endpoint URL.
            faucet_address: Node-managed account that funds payouts.
            timeout_seconds: Timeout for each RPC round-trip in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.provider = provider
        self.faucet_address = faucet_address
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)
        self._ids = itertools.count(1)

    async def close(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Perform one JSON-RPC call and return its ``result`` member.

        Raises:
            LedgerAppError: On transport failures, HTTP errors, malformed
                replies, or a JSON-RPC ``error`` member.
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await self._client.post(self.provider, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            logger.warning(
                "ledger.rpc_failed",
                extra={"rpc_method": method, "error_type": type(exc).__name__},
            )
            raise LedgerAppError(
                code="ledger_unavailable",
                message="Ledger node is unavailable, please try again later",
                details={"rpc_method": method},
            ) from exc
        except ValueError as exc:
            raise LedgerAppError(
                code="ledger_invalid_response",
                message="Ledger node returned an invalid response",
                details={"rpc_method": method},
            ) from exc

        if not isinstance(body, dict):
            raise LedgerAppError(
                code="ledger_invalid_response",
                message="Ledger node returned an invalid response",
                details={"rpc_method": method},
            )
        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise LedgerAppError(
                code="ledger_rpc_error",
                message=message or "Ledger node rejected the request",
                details={"rpc_method": method},
            )
        if "result" not in body:
            raise LedgerAppError(
                code="ledger_invalid_response",
                message="Ledger node returned an invalid response",
                details={"rpc_method": method},
            )
        return body["result"]

    async def pending_nonce(self, address: str) -> int:
        result = await self._call("eth_getTransactionCount", [address, "pending"])
        try:
            return int(result, 16)
        except (TypeError, ValueError) as exc:
            raise LedgerAppError(
                code="ledger_invalid_response",
                message="Ledger node returned an invalid response",
                details={"rpc_method": "eth_getTransactionCount"},
            ) from exc

    async def transfer(self, to: str, amount_wei: int) -> str:
        if not self.faucet_address:
            raise LedgerAppError(
                code="ledger_missing_faucet_address",
                message="Faucet account is not configured",
                details={"hint": "Set LEDGER_FAUCET_ADDRESS"},
                status_code=500,
            )

        tx = {"from": self.faucet_address, "to": to, "value": hex(amount_wei)}
        tx_hash = await self._call("eth_sendTransaction", [tx])
        if not isinstance(tx_hash, str):
            raise LedgerAppError(
                code="ledger_invalid_response",
                message="Ledger node returned an invalid response",
                details={"rpc_method": "eth_sendTransaction"},
            )

        logger.info("ledger.transfer_submitted", extra={"to": to, "tx_hash": tx_hash})
        return tx_hash
