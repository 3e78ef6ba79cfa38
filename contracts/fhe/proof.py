"""
Input proofs for externally encrypted values.

A client proves it knows the plaintext and randomness behind each Paillier
ciphertext it submits (non-interactive Σ-protocol, Fiat-Shamir). The
challenge hashes in the target contract, the user and the input index, so a
proof cannot be replayed for another contract or another sender.

    prover                               verifier
    x, s random
    A = g^x · s^n            mod n²
    e = H(n, C, A, binding)
    z_m = x + e·m
    z_r = s · r^e            mod n
                                         g^z_m · z_r^n == A · C^e  (mod n²)
"""

import hashlib
import json
import math
import secrets
from dataclasses import dataclass


CHALLENGE_BITS = 128
PLAINTEXT_BITS = 64
# Statistical hiding margin on top of e·m
MASK_BITS = PLAINTEXT_BITS + CHALLENGE_BITS + 80


class InvalidProofEncoding(ValueError):
    pass


@dataclass(frozen=True)
class KnowledgeProof:
    commitment: int
    z_m: int
    z_r: int

    def to_list(self) -> list[str]:
        return [str(self.commitment), str(self.z_m), str(self.z_r)]

    @classmethod
    def from_list(cls, values) -> "KnowledgeProof":
        try:
            commitment, z_m, z_r = (int(v) for v in values)
        except (TypeError, ValueError) as exc:
            raise InvalidProofEncoding("Malformed knowledge proof") from exc
        return cls(commitment, z_m, z_r)


def binding(contract: str, user: str, index: int) -> bytes:
    return f"{contract}|{user}|{index}".encode()


def derive_handle(ciphertext: int, contract: str, user: str, index: int) -> str:
    """Handle the coprocessor will know this input by."""
    digest = hashlib.sha3_256(
        b"input|" + str(ciphertext).encode() + b"|" + binding(contract, user, index)
    ).hexdigest()
    return "0x" + digest


def random_coprime(n: int) -> int:
    while True:
        r = secrets.randbelow(n)
        if r > 1 and math.gcd(r, n) == 1:
            return r


def _challenge(n: int, ciphertext: int, commitment: int, context: bytes) -> int:
    h = hashlib.sha256()
    for part in (n, ciphertext, commitment):
        h.update(str(part).encode())
        h.update(b"|")
    h.update(context)
    return int.from_bytes(h.digest(), "big") >> (256 - CHALLENGE_BITS)


def _g_pow(n: int, nsquare: int, exponent: int) -> int:
    # g = n + 1, so g^x = 1 + n·x (mod n²)
    return (1 + n * exponent) % nsquare


def prove(public_key, plaintext: int, r: int, ciphertext: int, context: bytes) -> KnowledgeProof:
    n, nsquare = public_key.n, public_key.nsquare
    x = secrets.randbits(MASK_BITS)
    s = random_coprime(n)
    commitment = (_g_pow(n, nsquare, x) * pow(s, n, nsquare)) % nsquare
    e = _challenge(n, ciphertext, commitment, context)
    return KnowledgeProof(
        commitment=commitment,
        z_m=x + e * plaintext,
        z_r=(s * pow(r, e, n)) % n,
    )


def verify(public_key, ciphertext: int, proof: KnowledgeProof, context: bytes) -> bool:
    n, nsquare = public_key.n, public_key.nsquare
    if not 0 < ciphertext < nsquare or not 0 < proof.commitment < nsquare:
        return False
    if proof.z_m < 0 or proof.z_m.bit_length() > MASK_BITS + 1:
        return False
    if not 0 < proof.z_r < n:
        return False
    e = _challenge(n, ciphertext, proof.commitment, context)
    lhs = (_g_pow(n, nsquare, proof.z_m) * pow(proof.z_r, n, nsquare)) % nsquare
    rhs = (proof.commitment * pow(ciphertext, e, nsquare)) % nsquare
    return lhs == rhs


def encode_input_proof(contract: str, user: str, ciphertexts: list[int], proofs: list[KnowledgeProof]) -> bytes:
    return json.dumps({
        "contract": contract,
        "user": user,
        "ciphertexts": [str(c) for c in ciphertexts],
        "proofs": [p.to_list() for p in proofs],
    }, sort_keys=True).encode()


def decode_input_proof(data: bytes) -> dict:
    try:
        payload = json.loads(data)
        ciphertexts = [int(c) for c in payload["ciphertexts"]]
        proofs = [KnowledgeProof.from_list(p) for p in payload["proofs"]]
        contract, user = payload["contract"], payload["user"]
    except (ValueError, KeyError, TypeError) as exc:
        raise InvalidProofEncoding("Malformed input proof") from exc
    if len(ciphertexts) != len(proofs):
        raise InvalidProofEncoding("Ciphertext and proof counts differ")
    return {"contract": contract, "user": user, "ciphertexts": ciphertexts, "proofs": proofs}
