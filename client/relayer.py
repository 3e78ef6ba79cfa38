"""
Relayer: the service that answers user decryption requests.

A user asks for the plaintext of some handles by sending a signed
authorization naming an ephemeral public key, the contracts involved and a
validity window. The relayer checks the signature and the window, asks the
coprocessor for each value (which enforces the ACL), and returns each value
sealed to the ephemeral key so only the requester can open it.
"""

import base64
import json
import logging
from dataclasses import dataclass

from algosdk import util
from nacl.public import PublicKey, SealedBox

from client.errors import DecryptionRejected, ServiceUnavailable
from contracts.fhe.coprocessor import UINT64_MAX, FHEError


logger = logging.getLogger(__name__)

MAX_DURATION_DAYS = 365
SECONDS_PER_DAY = 86400
VALUE_BYTES = 8


@dataclass(frozen=True)
class DecryptAuthorization:
    """Typed message a wallet signs to authorize a decryption."""

    public_key: str
    contract_addresses: tuple
    start_timestamp: int
    duration_days: int

    domain = "VaultRocket UserDecryptRequestVerification"

    def message(self) -> bytes:
        return json.dumps({
            "domain": self.domain,
            "publicKey": self.public_key,
            "contractAddresses": list(self.contract_addresses),
            "startTimestamp": self.start_timestamp,
            "durationDays": self.duration_days,
        }, sort_keys=True).encode()


@dataclass(frozen=True)
class UserDecryptRequest:
    handles: tuple  # (handle, contract_address) pairs
    authorization: DecryptAuthorization
    signature: str
    user_address: str


class Relayer:
    """
    Decryption endpoint in front of the coprocessor.

    Args:
        localnet: Network whose coprocessor and block time are used
    """

    def __init__(self, localnet):
        self.localnet = localnet
        self.available = True

    def public_key(self):
        """Network encryption key clients encrypt inputs with."""
        self._require_available()
        return self.localnet.coprocessor.public_key

    def user_decrypt(self, request: UserDecryptRequest) -> dict[str, str]:
        """
        Decrypt handles for the requesting user.

        Returns:
            Mapping of handle to base64 sealed value
        """
        self._require_available()
        auth = request.authorization

        if not util.verify_bytes(auth.message(), request.signature, request.user_address):
            raise DecryptionRejected("Invalid signature on decryption request.")
        if not 0 < auth.duration_days <= MAX_DURATION_DAYS:
            raise DecryptionRejected("Invalid authorization duration.")
        now = self.localnet.latest_timestamp
        if now < auth.start_timestamp:
            raise DecryptionRejected("Authorization is not valid yet.")
        if now > auth.start_timestamp + auth.duration_days * SECONDS_PER_DAY:
            raise DecryptionRejected("Authorization has expired.")

        try:
            recipient = SealedBox(PublicKey(bytes.fromhex(auth.public_key)))
        except (ValueError, TypeError) as exc:
            raise DecryptionRejected("Invalid ephemeral public key.") from exc

        results = {}
        for handle, contract in request.handles:
            if contract not in auth.contract_addresses:
                raise DecryptionRejected(f"Contract {contract} is not covered by the authorization.")
            try:
                value = self.localnet.coprocessor.user_decrypt_value(handle, request.user_address, contract)
            except FHEError as exc:
                logger.warning("Rejected decryption of %s for %s: %s", handle, request.user_address, exc)
                raise DecryptionRejected(str(exc)) from exc
            if not 0 <= value <= UINT64_MAX:
                logger.error("Handle %s holds %d, outside the euint64 range", handle, value)
                raise DecryptionRejected(f"Value behind {handle} is not a 64-bit amount.")
            sealed = recipient.encrypt(value.to_bytes(VALUE_BYTES, "big"))
            results[handle] = base64.b64encode(sealed).decode()
        return results

    def _require_available(self) -> None:
        if not self.available:
            raise ServiceUnavailable()
