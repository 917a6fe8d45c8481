from abc import ABC, abstractmethod


class AbstractLedgerClient(ABC):
	"""Interface for the external ledger used by the faucet."""

	@abstractmethod
	async def pending_nonce(self, address: str) -> int:
		"""Return the next expected transaction sequence number for ``address``.

		The count includes transactions still waiting in the node's pool.

		Raises:
			LedgerAppError: If the node cannot be reached or the reply is invalid.
		"""
		...

	@abstractmethod
	async def transfer(self, to: str, amount_wei: int) -> str:
		"""Send ``amount_wei`` from the faucet account to ``to``.

		Returns:
			str: Hash of the submitted transaction.

		Raises:
			LedgerAppError: If the transaction could not be submitted.
		"""
		...

	async def close(self) -> None:
		"""Release network resources held by the client."""
		return None
