"""
Tests for Confidential USDT Token Contract

Tests cover:
- Minting and encrypted balances
- Encrypted transfers with insufficient balance
- Operator approvals and expiry
- Receiver validation
"""

import pytest
from algosdk.constants import ZERO_ADDRESS

from contracts.confidential_token.contract import ConfidentialTransfer, OperatorSet
from contracts.fhe.coprocessor import UINT64_MAX, ZERO_HANDLE, AccessDenied


class TestConfidentialUSDT:
    """Test suite for ConfidentialUSDT contract."""

    def test_create_token(self, localnet, token):
        """Test token metadata and empty supply."""
        # Assert
        assert localnet.read(token.name) == "Confidential USDT"
        assert localnet.read(token.symbol) == "cUSDT"
        assert localnet.read(token.decimals) == 6
        assert localnet.read(token.confidential_total_supply) == ZERO_HANDLE

    def test_mint(self, localnet, token, token_address, alice, decrypt):
        """Test minting to an account."""
        # Act
        receipt = localnet.call(alice, token.mint, alice, 5_000_000)

        # Assert
        balance = localnet.read(token.confidential_balance_of, alice)
        assert decrypt(balance, alice, token_address) == 5_000_000
        (event,) = receipt.events(ConfidentialTransfer)
        assert event.sender == ZERO_ADDRESS
        assert event.receiver == alice
        assert event.amount == receipt.return_value

    def test_mint_accumulates_balance(self, localnet, token, token_address, alice, bob, decrypt):
        """Test repeated mints add up."""
        # Act
        localnet.call(alice, token.mint, alice, 1_000_000)
        localnet.call(bob, token.mint, alice, 500_000)

        # Assert
        balance = localnet.read(token.confidential_balance_of, alice)
        assert decrypt(balance, alice, token_address) == 1_500_000
        supply = localnet.read(token.confidential_total_supply)
        assert supply != ZERO_HANDLE

    def test_mint_rejects_out_of_range_amount(self, localnet, token, alice):
        """Test that mint amounts must fit in 64 bits."""
        with pytest.raises(ValueError):
            localnet.call(alice, token.mint, alice, UINT64_MAX + 1)
        with pytest.raises(ValueError):
            localnet.call(alice, token.mint, alice, -1)

    def test_mint_to_zero_address(self, localnet, token, alice):
        """Test that nothing can be minted to the zero address."""
        with pytest.raises(AssertionError, match="Cannot mint to the zero address"):
            localnet.call(alice, token.mint, ZERO_ADDRESS, 1)

    def test_balance_is_private(self, localnet, token, token_address, alice, bob, decrypt):
        """Test that only the holder can decrypt a balance."""
        # Arrange
        localnet.call(alice, token.mint, alice, 1_000_000)

        # Act & Assert
        with pytest.raises(AccessDenied):
            decrypt(localnet.read(token.confidential_balance_of, alice), bob, token_address)

    def test_transfer_external(self, localnet, token, token_address, alice, bob, encrypt, decrypt):
        """Test a user-encrypted transfer between two accounts."""
        # Arrange
        localnet.call(alice, token.mint, alice, 1_000_000)
        handle, proof = encrypt(token_address, alice, 300_000)

        # Act
        transferred = localnet.call(alice, token.confidential_transfer_external, bob, handle, proof).return_value

        # Assert
        assert decrypt(transferred, alice, token_address) == 300_000
        assert decrypt(transferred, bob, token_address) == 300_000
        assert decrypt(localnet.read(token.confidential_balance_of, alice), alice, token_address) == 700_000
        assert decrypt(localnet.read(token.confidential_balance_of, bob), bob, token_address) == 300_000

    def test_transfer_more_than_balance_moves_zero(self, localnet, token, token_address, alice, bob, encrypt, decrypt):
        """Test that an insufficient balance transfers zero instead of failing."""
        # Arrange
        localnet.call(alice, token.mint, alice, 100)
        handle, proof = encrypt(token_address, alice, 101)

        # Act
        transferred = localnet.call(alice, token.confidential_transfer_external, bob, handle, proof).return_value

        # Assert
        assert decrypt(transferred, alice, token_address) == 0
        assert decrypt(localnet.read(token.confidential_balance_of, alice), alice, token_address) == 100
        assert decrypt(localnet.read(token.confidential_balance_of, bob), bob, token_address) == 0

    def test_transfer_to_zero_address(self, localnet, token, token_address, alice, encrypt):
        """Test that transfers to the zero address are refused."""
        # Arrange
        localnet.call(alice, token.mint, alice, 1_000)
        handle, proof = encrypt(token_address, alice, 10)

        # Act & Assert
        with pytest.raises(AssertionError, match="Cannot transfer to the zero address"):
            localnet.call(alice, token.confidential_transfer_external, ZERO_ADDRESS, handle, proof)

    def test_transfer_of_foreign_handle(self, localnet, token, alice, bob):
        """Test that a caller cannot spend a handle it is not allowed to use."""
        # Arrange
        localnet.call(alice, token.mint, alice, 1_000)
        balance = localnet.read(token.confidential_balance_of, alice)

        # Act & Assert
        with pytest.raises(AssertionError, match="not allowed to use this amount"):
            localnet.call(bob, token.confidential_transfer, bob, balance)

    def test_set_operator_emits_event(self, localnet, token, alice, bob):
        """Test that approving an operator is logged with its expiry."""
        # Act
        until = localnet.latest_timestamp + 60
        receipt = localnet.call(alice, token.set_operator, bob, until)

        # Assert
        (event,) = receipt.events(OperatorSet)
        assert event.holder == alice
        assert event.operator == bob
        assert event.until == until

    def test_operator_approval_expires(self, localnet, token, alice, bob):
        """Test that operator approval is time-boxed."""
        # Arrange
        localnet.call(alice, token.set_operator, bob, localnet.latest_timestamp + 10)

        # Assert
        assert localnet.read(token.is_operator, alice, bob) is True
        assert localnet.read(token.is_operator, alice, alice) is True
        localnet.advance_time(10)
        assert localnet.read(token.is_operator, alice, bob) is True
        localnet.advance_time(1)
        assert localnet.read(token.is_operator, alice, bob) is False
        assert localnet.read(token.is_operator, bob, alice) is False

    def test_transfer_from_requires_operator(self, localnet, vault, vault_address, token, owner, alice, encrypt):
        """Test that the vault cannot pull funds after the approval expired."""
        # Arrange
        localnet.call(alice, token.mint, alice, 1_000_000)
        localnet.call(alice, token.set_operator, vault_address, localnet.latest_timestamp + 5)
        localnet.call(owner, vault.configure_campaign, "Demo", 1, localnet.latest_timestamp + 3600)
        localnet.advance_time(6)

        # Act & Assert
        with pytest.raises(AssertionError, match="is not an operator"):
            localnet.call(alice, vault.contribute, *encrypt(vault_address, alice, 1_000))
