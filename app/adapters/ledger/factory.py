"""Factory for creating ledger client instances."""

from app.adapters.ledger.base import AbstractLedgerClient
from app.adapters.ledger.jsonrpc_client import JsonRpcLedgerClient
from app.core.config import LedgerSettings, settings
from app.core.errors import LedgerAppError


def create_ledger_client(ledger_settings: LedgerSettings | None = None) -> AbstractLedgerClient:
    """Instantiate the ledger client from configuration.

    Args:
        ledger_settings: Optional ledger settings; defaults to ``settings.ledger``.

    Returns:
        AbstractLedgerClient: Configured ledger client.

    Raises:
        LedgerAppError: If the provider URL is not an HTTP(S) endpoint.
    """
    cfg = ledger_settings or settings.ledger

    if not cfg.provider.lower().startswith(("http://", "https://")):
        raise LedgerAppError(
            code="ledger_unsupported_provider",
            message=f"Unsupported ledger provider URL: '{cfg.provider}'. Use an http(s) endpoint",
            status_code=500,
        )

    return JsonRpcLedgerClient(
        provider=cfg.provider,
        faucet_address=cfg.faucet_address,
        timeout_seconds=cfg.timeout_seconds,
    )
