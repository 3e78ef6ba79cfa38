"""
Wallet: an account that signs transactions and decryption authorizations.
"""

import asyncio
import logging

from algosdk import account, mnemonic, util

from client.errors import SignatureUnavailable, TransactionFailed
from contracts.fhe.coprocessor import FHEError


logger = logging.getLogger(__name__)


class Wallet:
    """
    Signing account for the client.

    A watch-only wallet (no private key) can read but not sign; signing
    requests fail with SignatureUnavailable.
    """

    def __init__(self, private_key: str | None = None, address: str | None = None):
        self._private_key = private_key
        if private_key is not None:
            address = account.address_from_private_key(private_key)
        if address is None:
            raise ValueError("A wallet needs a private key or an address")
        self.address = address

    @classmethod
    def generate(cls) -> "Wallet":
        private_key, _ = account.generate_account()
        return cls(private_key)

    @classmethod
    def from_mnemonic(cls, phrase: str) -> "Wallet":
        return cls(mnemonic.to_private_key(phrase))

    @classmethod
    def watch_only(cls, address: str) -> "Wallet":
        return cls(address=address)

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    def sign_typed_data(self, message: bytes) -> str:
        """Sign an authorization message; returns a base64 signature."""
        if not self.can_sign:
            raise SignatureUnavailable()
        return util.sign_bytes(message, self._private_key)

    async def send_transaction(self, localnet, method, *args):
        """
        Submit a contract call and wait until it is committed.

        Returns:
            The transaction receipt
        """
        if not self.can_sign:
            raise SignatureUnavailable("Wallet cannot sign transactions.")
        # Contracts reject with a failed assert, the coprocessor with FHEError
        try:
            receipt = await asyncio.to_thread(localnet.call, self.address, method, *args)
        except (AssertionError, FHEError) as exc:
            raise TransactionFailed(str(exc)) from exc
        logger.info("Confirmed %s (%s)", receipt.method, receipt.tx_id)
        return receipt
