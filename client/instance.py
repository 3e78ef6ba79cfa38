"""
Client-side FHE instance: encrypts inputs and runs user decryption.

    instance = await create_instance(relayer)

    encrypted = await instance.create_encrypted_input(vault, user).add64(1_250_000).encrypt()
    vault.contribute(encrypted.handles[0], encrypted.input_proof)

    keypair = instance.generate_keypair()
    auth = instance.create_authorization(keypair.public_key, [vault], start, 10)
    signature = wallet.sign_typed_data(auth.message())
    values = await instance.user_decrypt([(handle, vault)], keypair, auth, signature, user)
"""

import asyncio
import base64
import logging
from dataclasses import dataclass

from nacl.exceptions import CryptoError
from nacl.public import PrivateKey, SealedBox

from client.errors import DecryptionRejected, ServiceUnavailable
from client.relayer import DecryptAuthorization, UserDecryptRequest
from contracts.fhe import proof as input_proofs
from contracts.fhe.coprocessor import UINT64_MAX


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncryptedInputResult:
    handles: list
    input_proof: bytes


@dataclass(frozen=True)
class Keypair:
    public_key: str
    private_key: str


class EncryptedInput:
    """Values to encrypt for one (contract, user) pair."""

    def __init__(self, public_key, contract_address: str, user_address: str):
        self._public_key = public_key
        self.contract_address = contract_address
        self.user_address = user_address
        self._values: list[int] = []

    def add64(self, value: int) -> "EncryptedInput":
        if not isinstance(value, int) or not 0 <= value <= UINT64_MAX:
            raise ValueError(f"{value!r} is not a 64-bit unsigned integer")
        self._values.append(value)
        return self

    def build(self) -> EncryptedInputResult:
        """Encrypt the values and prove knowledge of each plaintext."""
        if not self._values:
            raise ValueError("No values added to the encrypted input")
        n = self._public_key.n
        ciphertexts, proofs, handles = [], [], []
        for index, value in enumerate(self._values):
            r = input_proofs.random_coprime(n)
            ciphertext = self._public_key.raw_encrypt(value, r_value=r)
            context = input_proofs.binding(self.contract_address, self.user_address, index)
            proofs.append(input_proofs.prove(self._public_key, value, r, ciphertext, context))
            ciphertexts.append(ciphertext)
            handles.append(input_proofs.derive_handle(ciphertext, self.contract_address, self.user_address, index))
        input_proof = input_proofs.encode_input_proof(
            self.contract_address, self.user_address, ciphertexts, proofs
        )
        return EncryptedInputResult(handles=handles, input_proof=input_proof)

    async def encrypt(self) -> EncryptedInputResult:
        return await asyncio.to_thread(self.build)


class FheInstance:
    """
    Encryption and decryption for one network.

    Args:
        public_key: Network encryption key
        relayer: Service answering user decryption requests
    """

    def __init__(self, public_key, relayer):
        self.public_key = public_key
        self.relayer = relayer

    def create_encrypted_input(self, contract_address: str, user_address: str) -> EncryptedInput:
        return EncryptedInput(self.public_key, contract_address, user_address)

    def generate_keypair(self) -> Keypair:
        private_key = PrivateKey.generate()
        return Keypair(
            public_key=bytes(private_key.public_key).hex(),
            private_key=bytes(private_key).hex(),
        )

    def create_authorization(
        self,
        public_key: str,
        contract_addresses: list,
        start_timestamp: int,
        duration_days: int,
    ) -> DecryptAuthorization:
        return DecryptAuthorization(
            public_key=public_key,
            contract_addresses=tuple(contract_addresses),
            start_timestamp=int(start_timestamp),
            duration_days=int(duration_days),
        )

    async def user_decrypt(
        self,
        handles: list,
        keypair: Keypair,
        authorization: DecryptAuthorization,
        signature: str,
        user_address: str,
    ) -> dict[str, int]:
        """
        Decrypt `(handle, contract_address)` pairs the user is allowed to read.

        Returns:
            Mapping of handle to plaintext value
        """
        request = UserDecryptRequest(
            handles=tuple(handles),
            authorization=authorization,
            signature=signature,
            user_address=user_address,
        )
        sealed = await asyncio.to_thread(self.relayer.user_decrypt, request)

        box = SealedBox(PrivateKey(bytes.fromhex(keypair.private_key)))
        values = {}
        for handle, payload in sealed.items():
            try:
                plaintext = box.decrypt(base64.b64decode(payload))
            except CryptoError as exc:
                raise DecryptionRejected("Relayer response is not sealed to this key.") from exc
            values[handle] = int.from_bytes(plaintext, "big")
        return values


async def create_instance(relayer) -> FheInstance:
    """Fetch the network key from the relayer and build an instance."""
    try:
        public_key = await asyncio.to_thread(relayer.public_key)
    except ServiceUnavailable:
        logger.error("Relayer unreachable while creating FHE instance")
        raise
    return FheInstance(public_key, relayer)
