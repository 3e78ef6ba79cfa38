"""
Confidential USDT (cUSDT) Token Contract for VaultRocket

A payment token whose balances are ciphertext handles. Amounts move between
accounts without ever being revealed on chain; only accounts on a handle's
ACL can decrypt it.

Features:
- Open test mint of plaintext amounts (6 decimals)
- Encrypted transfers, from the holder or from an approved operator
- Time-boxed operator approvals
- Insufficient balance transfers zero instead of failing, so the outcome
  of a transfer leaks nothing

Algorand Primitives Used:
- Global state (encrypted total supply)
- Boxes (encrypted balances, operator approvals)
- ARC-28 events (transfers, operator approvals)
- FHE coprocessor (add, sub, le, select, ACL grants)
"""

from algopy import (
    ARC4Contract,
    Account,
    BoxMap,
    Bytes,
    Global,
    GlobalState,
    String,
    Txn,
    UInt64,
    arc4,
    subroutine,
)

from contracts.fhe.coprocessor import ZERO_HANDLE
from contracts.fhe.lib import FHE


TOKEN_NAME = "Confidential USDT"
TOKEN_SYMBOL = "cUSDT"
DECIMALS = 6


class ConfidentialTransfer(arc4.Struct):
    sender: arc4.Address
    receiver: arc4.Address
    amount: arc4.String


class OperatorSet(arc4.Struct):
    holder: arc4.Address
    operator: arc4.Address
    until: arc4.UInt64


class ConfidentialUSDT(ARC4Contract):
    """
    Encrypted-balance payment token.

    State Schema:
    - Global State:
        - total_supply: Handle of the encrypted total supply

    - Boxes:
        - bal_{account}: Handle of the account's encrypted balance
        - op_{holder}{operator}: Approval expiry timestamp
    """

    def __init__(self) -> None:
        self.total_supply = GlobalState(String(ZERO_HANDLE))
        self.balances = BoxMap(Account, String, key_prefix=b"bal_")
        self.operators = BoxMap(Bytes, UInt64, key_prefix=b"op_")

    @arc4.abimethod(create="require")
    def create(self) -> None:
        """
        Create the token with an empty supply.
        """
        self.total_supply.value = String(ZERO_HANDLE)

    @arc4.abimethod
    def mint(self, to: Account, amount: UInt64) -> String:
        """
        Mint a plaintext amount to an account.

        Args:
            to: Receiving address
            amount: Amount in base units (10^-6 cUSDT)

        Returns:
            Handle of the minted amount
        """
        assert to != Global.zero_address, "Cannot mint to the zero address"
        encrypted = FHE.as_euint64(amount)
        return self._update(Global.zero_address, to, encrypted)

    @arc4.abimethod
    def set_operator(self, operator: Account, until: UInt64) -> None:
        """
        Let `operator` move the caller's funds until timestamp `until`.
        """
        self.operators[Txn.sender.bytes + operator.bytes] = until
        arc4.emit(OperatorSet(arc4.Address(Txn.sender), arc4.Address(operator), arc4.UInt64(until)))

    @arc4.abimethod(readonly=True)
    def is_operator(self, holder: Account, spender: Account) -> bool:
        return self._is_operator(holder, spender)

    @arc4.abimethod
    def confidential_transfer(self, to: Account, amount: String) -> String:
        """
        Transfer an encrypted amount the caller is allowed to use.

        Returns:
            Handle of the amount actually transferred
        """
        assert FHE.is_sender_allowed(amount), "Caller is not allowed to use this amount"
        return self._update(Txn.sender, to, amount)

    @arc4.abimethod
    def confidential_transfer_external(self, to: Account, encrypted_amount: String, input_proof: Bytes) -> String:
        amount = FHE.from_external(encrypted_amount, input_proof)
        return self._update(Txn.sender, to, amount)

    @arc4.abimethod
    def confidential_transfer_from(self, from_: Account, to: Account, amount: String) -> String:
        """
        Transfer on behalf of `from_`. Caller must be an approved operator.

        Args:
            from_: Holder whose balance is debited
            to: Receiving address
            amount: Handle the caller is allowed to use

        Returns:
            Handle of the amount actually transferred
        """
        assert FHE.is_sender_allowed(amount), "Caller is not allowed to use this amount"
        assert self._is_operator(from_, Txn.sender), "Caller is not an operator for this holder"
        return self._update(from_, to, amount)

    @arc4.abimethod(readonly=True)
    def confidential_balance_of(self, account: Account) -> String:
        return self.balances.get(account, default=String(ZERO_HANDLE))

    @arc4.abimethod(readonly=True)
    def confidential_total_supply(self) -> String:
        return self.total_supply.value

    @arc4.abimethod(readonly=True)
    def name(self) -> String:
        return String(TOKEN_NAME)

    @arc4.abimethod(readonly=True)
    def symbol(self) -> String:
        return String(TOKEN_SYMBOL)

    @arc4.abimethod(readonly=True)
    def decimals(self) -> UInt64:
        return UInt64(DECIMALS)

    @subroutine
    def _is_operator(self, holder: Account, spender: Account) -> bool:
        if holder == spender:
            return True
        until = self.operators.get(holder.bytes + spender.bytes, default=UInt64(0))
        return Global.latest_timestamp <= until

    @subroutine
    def _update(self, from_: Account, to: Account, amount: String) -> String:
        assert to != Global.zero_address, "Cannot transfer to the zero address"

        if from_ == Global.zero_address:
            transferred = amount
            supply = self.total_supply.value
            supply = FHE.add(supply, transferred) if FHE.is_initialized(supply) else transferred
            FHE.allow_this(supply)
            self.total_supply.value = supply
        else:
            balance = self.balances.get(from_, default=String(ZERO_HANDLE))
            if not FHE.is_initialized(balance):
                balance = FHE.as_euint64(UInt64(0))
            zero = FHE.as_euint64(UInt64(0))
            sufficient = FHE.le(amount, balance)
            transferred = FHE.select(sufficient, amount, zero)
            remaining = FHE.sub(balance, transferred)
            FHE.allow_this(remaining)
            FHE.allow(remaining, from_)
            self.balances[from_] = remaining

        current = self.balances.get(to, default=String(ZERO_HANDLE))
        updated = FHE.add(current, transferred) if FHE.is_initialized(current) else transferred
        FHE.allow_this(updated)
        FHE.allow(updated, to)
        self.balances[to] = updated

        FHE.allow_this(transferred)
        if from_ != Global.zero_address:
            FHE.allow(transferred, from_)
        FHE.allow(transferred, to)
        FHE.allow(transferred, Txn.sender)
        arc4.emit(ConfidentialTransfer(arc4.Address(from_), arc4.Address(to), arc4.String(transferred)))
        return transferred
