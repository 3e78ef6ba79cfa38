"""
FHE coprocessor in mock mode.

Contracts never see plaintexts: they hold 32-byte ciphertext handles and ask
the coprocessor to compute on them. This in-process coprocessor keeps the
ciphertext behind every handle, the access-control list (ACL) deciding who
may use or decrypt a handle, and the network key.

Addition and subtraction are homomorphic over Paillier ciphertexts. Like
the mock node used during contract development, comparison and selection
are evaluated with the network key; their results come back as fresh
ciphertexts under new handles.
"""

import hashlib
import logging
import os

from phe import paillier

from contracts.fhe import proof as input_proofs


logger = logging.getLogger(__name__)

DEFAULT_KEY_LENGTH = int(os.getenv("FHE_KEY_LENGTH", "2048"))
ZERO_HANDLE = "0x" + "00" * 32
UINT64_MAX = 2**64 - 1


class FHEError(Exception):
    pass


class AccessDenied(FHEError):
    """Account is not on the ACL of a handle it tried to use."""


class InvalidInputProof(FHEError):
    pass


class UnknownHandle(FHEError):
    pass


class Coprocessor:
    """
    Stores ciphertexts by handle and evaluates FHE operations.

    Args:
        keypair: Existing `(public_key, private_key)` pair; generated when
            omitted
        key_length: Modulus size for a generated key
    """

    def __init__(self, keypair=None, key_length: int = DEFAULT_KEY_LENGTH):
        if keypair is None:
            keypair = paillier.generate_paillier_keypair(n_length=key_length)
        self.public_key, self._private_key = keypair
        self._ciphertexts: dict[str, paillier.EncryptedNumber] = {}
        self._acl: dict[str, set[str]] = {}
        self._transient: dict[str, set[str]] = {}
        self._nonce = 0

    # Transaction hooks

    def snapshot(self):
        return dict(self._ciphertexts), {h: set(a) for h, a in self._acl.items()}

    def restore(self, state) -> None:
        ciphertexts, acl = state
        self._ciphertexts = ciphertexts
        self._acl = acl
        self._transient = {}

    def end_transaction(self) -> None:
        self._transient = {}

    # ACL

    def is_allowed(self, handle: str, account: str) -> bool:
        return account in self._acl.get(handle, ()) or account in self._transient.get(handle, ())

    def allow(self, handle: str, account: str, by: str) -> None:
        self._require_allowed(handle, by)
        self._acl.setdefault(handle, set()).add(account)

    def allow_transient(self, handle: str, account: str, by: str) -> None:
        self._require_allowed(handle, by)
        self._transient.setdefault(handle, set()).add(account)

    def _require_allowed(self, handle: str, account: str) -> None:
        if handle not in self._ciphertexts:
            raise UnknownHandle(f"Unknown ciphertext handle {handle}")
        if not self.is_allowed(handle, account):
            raise AccessDenied(f"{account} is not allowed to use handle {handle}")

    # Ciphertext construction

    def trivial_encrypt(self, value: int, caller: str) -> str:
        """Encrypt a public constant on behalf of a contract."""
        if not 0 <= value <= UINT64_MAX:
            raise FHEError(f"Value {value} does not fit in 64 bits")
        return self._store(self.public_key.encrypt(value), caller, "trivial", value)

    def verify_input(self, handle: str, input_proof: bytes, contract: str, user: str) -> str:
        """
        Accept an externally encrypted input for `contract`, sent by `user`.

        Returns:
            The handle, now usable by `contract` for the rest of the
            transaction
        """
        try:
            payload = input_proofs.decode_input_proof(input_proof)
        except input_proofs.InvalidProofEncoding as exc:
            raise InvalidInputProof(str(exc)) from exc

        if payload["contract"] != contract or payload["user"] != user:
            raise InvalidInputProof("Input proof is bound to another contract or user")

        for index, (ciphertext, knowledge) in enumerate(zip(payload["ciphertexts"], payload["proofs"])):
            if input_proofs.derive_handle(ciphertext, contract, user, index) != handle:
                continue
            context = input_proofs.binding(contract, user, index)
            if not input_proofs.verify(self.public_key, ciphertext, knowledge, context):
                raise InvalidInputProof("Proof of plaintext knowledge does not verify")
            # Inputs are euint64; this also catches values wrapped modulo n
            if self._private_key.raw_decrypt(ciphertext) > UINT64_MAX:
                logger.warning("Rejected out-of-range input %s from %s", handle, user)
                raise InvalidInputProof("Encrypted input is outside the 64-bit range")
            self._ciphertexts[handle] = paillier.EncryptedNumber(self.public_key, ciphertext, 0)
            self._transient.setdefault(handle, set()).add(contract)
            return handle

        raise InvalidInputProof("Handle is not part of the input proof")

    # Operations

    def add(self, lhs: str, rhs: str, caller: str) -> str:
        a, b = self._operands(caller, lhs, rhs)
        return self._store(a + b, caller, "add", lhs, rhs)

    def sub(self, lhs: str, rhs: str, caller: str) -> str:
        a, b = self._operands(caller, lhs, rhs)
        return self._store(a - b, caller, "sub", lhs, rhs)

    def le(self, lhs: str, rhs: str, caller: str) -> str:
        a, b = self._operands(caller, lhs, rhs)
        result = int(self._decrypt(a) <= self._decrypt(b))
        return self._store(self.public_key.encrypt(result), caller, "le", lhs, rhs)

    def select(self, condition: str, if_true: str, if_false: str, caller: str) -> str:
        cond, a, b = self._operands(caller, condition, if_true, if_false)
        chosen = a if self._decrypt(cond) else b
        # Re-randomize so the result cannot be linked to either branch
        return self._store(chosen + self.public_key.encrypt(0), caller, "select", condition, if_true, if_false)

    # Decryption

    def user_decrypt_value(self, handle: str, user: str, contract: str) -> int:
        """Plaintext of `handle` for `user`, read through `contract`."""
        if handle not in self._ciphertexts:
            raise UnknownHandle(f"Unknown ciphertext handle {handle}")
        if user == contract:
            raise AccessDenied("User and contract addresses must differ")
        if handle not in self._acl or user not in self._acl[handle]:
            raise AccessDenied(f"{user} is not authorized to decrypt {handle}")
        if contract not in self._acl[handle]:
            raise AccessDenied(f"{contract} is not authorized to decrypt {handle}")
        return self._decrypt(self._ciphertexts[handle])

    # Internals

    def _operands(self, caller: str, *handles: str):
        for handle in handles:
            self._require_allowed(handle, caller)
        return [self._ciphertexts[h] for h in handles]

    def _decrypt(self, number: paillier.EncryptedNumber) -> int:
        return self._private_key.decrypt(number)

    def _store(self, number: paillier.EncryptedNumber, caller: str, op: str, *inputs) -> str:
        self._nonce += 1
        seed = "|".join([op, caller, str(self._nonce)] + [str(i) for i in inputs])
        handle = "0x" + hashlib.sha3_256(seed.encode()).hexdigest()
        self._ciphertexts[handle] = number
        self._transient.setdefault(handle, set()).add(caller)
        logger.debug("%s -> %s", op, handle)
        return handle
