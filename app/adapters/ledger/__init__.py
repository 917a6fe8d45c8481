"""Ledger adapter layer - abstracts over the node the faucet talks to."""

from app.adapters.ledger.base import AbstractLedgerClient
from app.adapters.ledger.factory import create_ledger_client
from app.adapters.ledger.jsonrpc_client import JsonRpcLedgerClient

__all__ = [
    "AbstractLedgerClient",
    "JsonRpcLedgerClient",
    "create_ledger_client",
]
