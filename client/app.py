"""
VaultRocket client: the user-facing operations of the fundraising app.

Each action checks what it can before submitting (instance ready, addresses
set, wallet connected, right network, owner-only actions), so a doomed
transaction is never sent. Failures are logged and raised as ClientError
with a message fit for the user.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from client.amounts import format_countdown, parse_amount
from client.config import ClientConfig
from client.errors import (
    AddressesNotConfigured,
    CampaignNotInitialized,
    ClientError,
    EncryptionServiceNotReady,
    InvalidAmount,
    NotCampaignOwner,
    UnsupportedNetwork,
    WalletNotConnected,
)
from contracts.fhe.coprocessor import UINT64_MAX, ZERO_HANDLE
from contracts.vault_rocket.contract import CampaignView


logger = logging.getLogger(__name__)


@dataclass
class DashboardState:
    campaign_id: int | None = None
    campaign: CampaignView | None = None
    user_contribution: int | None = None
    total_raised: int | None = None
    is_active: bool = False
    status: str = "Pending"
    countdown: str = ""


class VaultRocketClient:
    """
    Client for one user of a VaultRocket deployment.

    Args:
        localnet: Network to read from and submit to
        config: Contract addresses and client settings
        instance: Initialized FHE instance, or None while it is loading
        wallet: Connected wallet, or None when disconnected
    """

    def __init__(self, localnet, config: ClientConfig, instance=None, wallet=None):
        self.localnet = localnet
        self.config = config
        self.instance = instance
        self.wallet = wallet

    # Connection state

    @property
    def addresses_ready(self) -> bool:
        return self.config.addresses_ready

    @property
    def is_connected(self) -> bool:
        return self.wallet is not None

    @property
    def is_on_supported_network(self) -> bool:
        return self.localnet.genesis_id == self.config.supported_network

    def connect(self, wallet) -> None:
        self.wallet = wallet

    def disconnect(self) -> None:
        self.wallet = None

    @property
    def vault(self):
        return self.localnet.app(self.config.vault_rocket_address)

    @property
    def token(self):
        return self.localnet.app(self.config.cusdt_address)

    # Reads

    async def decrypt_handle(self, handle: str, contract_address: str) -> int | None:
        """
        Decrypt one handle for the connected wallet.

        Returns None when there is no instance or no wallet to sign with.
        """
        if self.instance is None or self.wallet is None:
            return None
        keypair = self.instance.generate_keypair()
        start = self.localnet.latest_timestamp
        authorization = self.instance.create_authorization(
            keypair.public_key, [contract_address], start, self.config.decrypt_duration_days
        )
        signature = self.wallet.sign_typed_data(authorization.message())
        values = await self.instance.user_decrypt(
            [(handle, contract_address)], keypair, authorization, signature, self.wallet.address
        )
        return values[handle]

    async def refresh_state(self) -> DashboardState:
        """Load the current campaign and whatever this user may decrypt."""
        if not self.addresses_ready:
            raise AddressesNotConfigured()
        state = DashboardState()
        vault_address = self.config.vault_rocket_address
        try:
            vault = self.vault
            campaign_id = await self._read(vault.campaign_id)
            if campaign_id == 0:
                return state

            campaign = await self._read(vault.get_campaign)
            state.campaign_id = campaign_id
            state.campaign = campaign
            now = self.localnet.latest_timestamp
            state.is_active = not campaign.finalized and campaign.end_timestamp > now
            state.status = "Active" if state.is_active else "Closed" if campaign.finalized else "Pending"
            state.countdown = format_countdown(campaign.end_timestamp, now)

            if self.wallet is not None:
                handle = await self._read(vault.get_contribution, campaign_id, self.wallet.address)
                if handle != ZERO_HANDLE and self.instance is not None:
                    state.user_contribution = await self.decrypt_handle(handle, vault_address)
                else:
                    state.user_contribution = 0

                if self.instance is not None and campaign.owner == self.wallet.address:
                    if campaign.total_raised == ZERO_HANDLE:
                        state.total_raised = 0
                    else:
                        state.total_raised = await self.decrypt_handle(campaign.total_raised, vault_address)
        except ClientError as exc:
            logger.error("Failed to refresh campaign state: %s", exc)
            raise
        except Exception as exc:
            logger.exception("Failed to refresh campaign state")
            raise ClientError(
                "Unable to load campaign data. Please check contract addresses and network."
            ) from exc
        return state

    async def my_balance(self) -> int:
        """Decrypted cUSDT balance of the connected wallet."""
        self._require_ready(needs_instance=True)
        handle = await self._read(self.token.confidential_balance_of, self.wallet.address)
        if handle == ZERO_HANDLE:
            return 0
        return await self.decrypt_handle(handle, self.config.cusdt_address)

    # Actions

    async def contribute(self, amount_text: str):
        """Encrypt `amount_text` cUSDT and contribute it to the current campaign."""
        self._require_ready(needs_instance=True)
        amount = self._parse(amount_text, "Enter a valid contribution amount.")

        logger.info("Encrypting amount...")
        encrypted = await self.instance.create_encrypted_input(
            self.config.vault_rocket_address, self.wallet.address
        ).add64(amount).encrypt()

        logger.info("Sending contribution...")
        receipt = await self._send(self.vault.contribute, encrypted.handles[0], encrypted.input_proof)
        logger.info("Contribution confirmed.")
        return receipt

    async def mint(self, amount_text: str):
        """Mint test cUSDT to the connected wallet."""
        self._require_ready()
        amount = self._parse(amount_text, "Enter a valid mint amount.")
        logger.info("Requesting mint...")
        return await self._send(self.token.mint, self.wallet.address, amount)

    async def approve_operator(self):
        """Let the vault pull cUSDT from this wallet for the configured period."""
        self._require_ready()
        expiry = self.localnet.latest_timestamp + self.config.operator_approval_days * 86400
        logger.info("Setting operator for VaultRocket...")
        return await self._send(self.token.set_operator, self.config.vault_rocket_address, expiry)

    async def configure(self, name: str, target_text: str, end: datetime | str | int):
        """
        Update the campaign. Only the fundraiser can do this.

        Args:
            name: New name; empty keeps the current one
            target_text: Target in cUSDT, e.g. "5000"
            end: End time as datetime, ISO-8601 string or unix timestamp
        """
        self._require_ready()
        campaign = await self._current_campaign()
        self._require_owner(campaign, "Only the fundraiser can update the campaign.")

        target = self._parse(target_text, "Enter a valid target.")
        end_timestamp = self._parse_end(end)

        logger.info("Updating campaign...")
        return await self._send(
            self.vault.configure_campaign, name or campaign.name, target, end_timestamp
        )

    async def start_campaign(self, name: str, target_text: str, end: datetime | str | int):
        """Configure the first campaign, or a new one after the last was closed."""
        self._require_ready()
        target = self._parse(target_text, "Enter a valid target.")
        if not name:
            raise ClientError("Enter a campaign name.")
        end_timestamp = self._parse_end(end)
        return await self._send(self.vault.configure_campaign, name, target, end_timestamp)

    async def close(self):
        """Close the campaign and withdraw the raised funds to the fundraiser."""
        self._require_ready()
        campaign = await self._current_campaign()
        self._require_owner(campaign, "Only the fundraiser can close the campaign.")
        logger.info("Closing campaign...")
        receipt = await self._send(self.vault.close_campaign)
        logger.info("Funds released to the fundraiser.")
        return receipt

    # Helpers

    def _require_ready(self, needs_instance: bool = False) -> None:
        if needs_instance and self.instance is None:
            raise EncryptionServiceNotReady()
        if not self.addresses_ready:
            raise AddressesNotConfigured()
        if not self.is_connected:
            raise WalletNotConnected()
        if not self.is_on_supported_network:
            raise UnsupportedNetwork(f"Please switch to the {self.config.supported_network} network.")

    def _require_owner(self, campaign: CampaignView, message: str) -> None:
        if campaign.owner != self.wallet.address:
            raise NotCampaignOwner(message)

    async def _current_campaign(self) -> CampaignView:
        campaign_id = await self._read(self.vault.campaign_id)
        if campaign_id == 0:
            raise CampaignNotInitialized()
        return await self._read(self.vault.get_campaign)

    @staticmethod
    def _parse(text: str, message: str) -> int:
        amount = parse_amount(text)
        # Contract amounts are uint64 base units
        if amount is None or amount > UINT64_MAX:
            raise InvalidAmount(message)
        return amount

    @staticmethod
    def _parse_end(end) -> int:
        if isinstance(end, datetime):
            return int(end.timestamp())
        if isinstance(end, int):
            return end
        try:
            return int(datetime.fromisoformat(end).timestamp())
        except (TypeError, ValueError) as exc:
            raise InvalidAmount("Enter a valid end date.") from exc

    async def _read(self, method, *args):
        return await asyncio.to_thread(self.localnet.read, method, *args)

    async def _send(self, method, *args):
        try:
            return await self.wallet.send_transaction(self.localnet, method, *args)
        except ClientError as exc:
            logger.error("%s failed: %s", method.__name__, exc)
            raise
