"""
FHE operations as seen from contract code.

Every call acts on behalf of the executing application: operands must be on
its ACL, and results are transiently allowed to it. A result that has to
outlive the transaction needs `allow_this`.

Handles travel through contract storage and ABI arguments as `String`.
"""

from contextlib import contextmanager
from contextvars import ContextVar

from algopy import Account, Global, String, Txn

from contracts.fhe.coprocessor import ZERO_HANDLE, Coprocessor


_active: ContextVar[Coprocessor] = ContextVar("coprocessor")


@contextmanager
def use_coprocessor(coprocessor: Coprocessor):
    """Serve FHE calls made by contracts with `coprocessor`."""
    token = _active.set(coprocessor)
    try:
        yield coprocessor
    finally:
        _active.reset(token)


def _coprocessor() -> Coprocessor:
    try:
        return _active.get()
    except LookupError:
        raise RuntimeError("No FHE coprocessor is serving this ledger") from None


def _this() -> str:
    return str(Global.current_application_address)


class FHE:
    @staticmethod
    def from_external(handle: String, input_proof) -> String:
        """Verify a user-supplied ciphertext sent by the current caller."""
        return String(_coprocessor().verify_input(str(handle), bytes(input_proof.value), _this(), str(Txn.sender)))

    @staticmethod
    def as_euint64(value) -> String:
        return String(_coprocessor().trivial_encrypt(int(value), _this()))

    @staticmethod
    def add(lhs: String, rhs: String) -> String:
        return String(_coprocessor().add(str(lhs), str(rhs), _this()))

    @staticmethod
    def sub(lhs: String, rhs: String) -> String:
        return String(_coprocessor().sub(str(lhs), str(rhs), _this()))

    @staticmethod
    def le(lhs: String, rhs: String) -> String:
        return String(_coprocessor().le(str(lhs), str(rhs), _this()))

    @staticmethod
    def select(condition: String, if_true: String, if_false: String) -> String:
        return String(_coprocessor().select(str(condition), str(if_true), str(if_false), _this()))

    @staticmethod
    def allow(handle: String, account: Account) -> None:
        _coprocessor().allow(str(handle), str(account), _this())

    @staticmethod
    def allow_this(handle: String) -> None:
        _coprocessor().allow(str(handle), _this(), _this())

    @staticmethod
    def allow_transient(handle: String, account: Account) -> None:
        _coprocessor().allow_transient(str(handle), str(account), _this())

    @staticmethod
    def is_sender_allowed(handle: String) -> bool:
        return _coprocessor().is_allowed(str(handle), str(Txn.sender))

    @staticmethod
    def is_initialized(handle: String) -> bool:
        return bool(handle) and handle != ZERO_HANDLE
