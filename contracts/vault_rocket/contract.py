"""
VaultRocket Confidential Fundraising Contract

Crowdfunding where nobody but the contributor sees what they gave, and
nobody but the fundraiser sees how much was raised. Contributions arrive as
encrypted cUSDT amounts and are summed homomorphically.

Features:
- One active campaign at a time, configured by the owner
- Encrypted per-contributor running totals and an encrypted campaign total
- Contributor can decrypt only their own total; owner can decrypt the total
- Owner closes the campaign and withdraws the vault's whole cUSDT balance

Campaign lifecycle (per id):
    Unconfigured -> Active -> (Active, reconfigured) -> Finalized

Algorand Primitives Used:
- Global state (campaign counter, owner, payment token)
- Boxes (campaign records, contribution handles)
- Inner application calls to the cUSDT token (operator transfer, payout)
- ARC-28 events (configuration, contributions, closing)
- FHE coprocessor (input verification, add, ACL grants)
"""

import typing

from algopy import (
    ARC4Contract,
    Account,
    Application,
    BoxMap,
    Bytes,
    Global,
    GlobalState,
    String,
    Txn,
    UInt64,
    arc4,
    op,
    subroutine,
)

from contracts.confidential_token.contract import ConfidentialUSDT
from contracts.fhe.coprocessor import ZERO_HANDLE
from contracts.fhe.lib import FHE


class Campaign(arc4.Struct):
    name: arc4.String
    target_amount: arc4.UInt64
    end_timestamp: arc4.UInt64
    finalized: arc4.Bool
    total_raised: arc4.String


class CampaignView(typing.NamedTuple):
    name: String
    target_amount: UInt64
    end_timestamp: UInt64
    finalized: bool
    owner: Account
    total_raised: String


class CampaignConfigured(arc4.Struct):
    campaign_id: arc4.UInt64
    name: arc4.String
    target_amount: arc4.UInt64
    end_timestamp: arc4.UInt64


class ContributionRecorded(arc4.Struct):
    campaign_id: arc4.UInt64
    contributor: arc4.Address
    contribution: arc4.String


class CampaignClosed(arc4.Struct):
    campaign_id: arc4.UInt64
    payout: arc4.String
    closed_at: arc4.UInt64


class VaultRocket(ARC4Contract):
    """
    Confidential fundraising vault.

    State Schema:
    - Global State:
        - owner: Fundraiser address (deployer)
        - payment_token: cUSDT application
        - latest_campaign_id: Id of the current campaign, 0 before the first

    - Boxes:
        - camp_{id}: Campaign record
        - contrib_{id}{contributor}: Handle of the contributor's running total
    """

    def __init__(self) -> None:
        self.owner = GlobalState(Account)
        self.payment_token = GlobalState(Application)
        self.latest_campaign_id = GlobalState(UInt64(0))
        self.campaigns = BoxMap(UInt64, Campaign, key_prefix=b"camp_")
        self.contributions = BoxMap(Bytes, String, key_prefix=b"contrib_")

    @arc4.abimethod(create="require")
    def create(self, payment_token: Application) -> None:
        """
        Create the vault.

        Args:
            payment_token: The cUSDT application
        """
        self.owner.value = Txn.sender
        self.payment_token.value = payment_token
        self.latest_campaign_id.value = UInt64(0)

    @arc4.abimethod
    def configure_campaign(self, name: String, target_amount: UInt64, end_timestamp: UInt64) -> UInt64:
        """
        Start a new campaign, or update the one in progress.

        A new id is allocated when there is no campaign yet or the current
        one is finalized. Otherwise the current campaign keeps its id and its
        encrypted total; only name, target and end time change.

        Args:
            name: Display name
            target_amount: Informational goal in base units
            end_timestamp: Unix time after which contributions are refused

        Returns:
            Campaign id
        """
        self._only_owner()
        assert end_timestamp > Global.latest_timestamp, "End time must be in the future"

        campaign_id = self.latest_campaign_id.value
        if campaign_id not in self.campaigns or self.campaigns[campaign_id].finalized.native:
            campaign_id = campaign_id + UInt64(1)
            total = FHE.as_euint64(UInt64(0))
            FHE.allow_this(total)
            FHE.allow(total, self.owner.value)
            self.latest_campaign_id.value = campaign_id
            self.campaigns[campaign_id] = Campaign(
                name=arc4.String(name),
                target_amount=arc4.UInt64(target_amount),
                end_timestamp=arc4.UInt64(end_timestamp),
                finalized=arc4.Bool(False),
                total_raised=arc4.String(total),
            )
        else:
            campaign = self.campaigns[campaign_id].copy()
            campaign.name = arc4.String(name)
            campaign.target_amount = arc4.UInt64(target_amount)
            campaign.end_timestamp = arc4.UInt64(end_timestamp)
            self.campaigns[campaign_id] = campaign.copy()

        arc4.emit(CampaignConfigured(
            arc4.UInt64(campaign_id),
            arc4.String(name),
            arc4.UInt64(target_amount),
            arc4.UInt64(end_timestamp),
        ))
        return campaign_id

    @arc4.abimethod
    def contribute(self, encrypted_amount: String, input_proof: Bytes) -> String:
        """
        Contribute an encrypted cUSDT amount to the current campaign.

        The caller must have approved this vault as cUSDT operator. The
        amount is pulled with an encrypted transfer; if the balance is too
        low the transfer moves zero, and zero is what gets recorded.

        Args:
            encrypted_amount: Input handle produced by the client
            input_proof: Proof binding the handle to this vault and caller

        Returns:
            Handle of the caller's updated running total
        """
        campaign_id = self.latest_campaign_id.value
        campaign = self._current_campaign()
        assert not campaign.finalized.native, "Campaign already finalized"
        assert Global.latest_timestamp < campaign.end_timestamp.native, "Campaign ended"

        contributor = Txn.sender
        token = self.payment_token.value

        amount = FHE.from_external(encrypted_amount, input_proof)
        FHE.allow_this(amount)
        FHE.allow_transient(amount, token.address)

        transferred, _txn = arc4.abi_call(
            ConfidentialUSDT.confidential_transfer_from,
            contributor,
            Global.current_application_address,
            amount,
            app_id=token,
        )

        key = op.itob(campaign_id) + contributor.bytes
        previous = self.contributions.get(key, default=String(ZERO_HANDLE))
        updated = FHE.add(previous, transferred) if FHE.is_initialized(previous) else transferred
        FHE.allow_this(updated)
        FHE.allow(updated, contributor)
        self.contributions[key] = updated

        total = FHE.add(campaign.total_raised.native, transferred)
        FHE.allow_this(total)
        FHE.allow(total, self.owner.value)
        campaign.total_raised = arc4.String(total)
        self.campaigns[campaign_id] = campaign.copy()

        arc4.emit(ContributionRecorded(arc4.UInt64(campaign_id), arc4.Address(contributor), arc4.String(updated)))
        return updated

    @arc4.abimethod
    def close_campaign(self) -> String:
        """
        Finalize the current campaign and pay the vault's balance to the owner.

        Returns:
            Handle of the payout
        """
        self._only_owner()
        campaign_id = self.latest_campaign_id.value
        campaign = self._current_campaign()
        assert not campaign.finalized.native, "Campaign already finalized"

        campaign.finalized = arc4.Bool(True)
        self.campaigns[campaign_id] = campaign.copy()

        token = self.payment_token.value
        balance, _txn = arc4.abi_call(
            ConfidentialUSDT.confidential_balance_of,
            Global.current_application_address,
            app_id=token,
        )
        if not FHE.is_initialized(balance):
            balance = FHE.as_euint64(UInt64(0))
        FHE.allow_transient(balance, token.address)

        owner = self.owner.value
        payout, _txn = arc4.abi_call(
            ConfidentialUSDT.confidential_transfer,
            owner,
            balance,
            app_id=token,
        )
        FHE.allow(payout, owner)

        arc4.emit(CampaignClosed(arc4.UInt64(campaign_id), arc4.String(payout), arc4.UInt64(Global.latest_timestamp)))
        return payout

    @arc4.abimethod(readonly=True)
    def get_campaign(self) -> CampaignView:
        """
        Get the current campaign.

        Returns:
            (name, target_amount, end_timestamp, finalized, owner, total_raised)
        """
        campaign = self._current_campaign()
        return CampaignView(
            name=campaign.name.native,
            target_amount=campaign.target_amount.native,
            end_timestamp=campaign.end_timestamp.native,
            finalized=campaign.finalized.native,
            owner=self.owner.value,
            total_raised=campaign.total_raised.native,
        )

    @arc4.abimethod(readonly=True)
    def get_contribution(self, campaign_id: UInt64, contributor: Account) -> String:
        return self.contributions.get(op.itob(campaign_id) + contributor.bytes, default=String(ZERO_HANDLE))

    @arc4.abimethod(readonly=True)
    def get_active_campaign_id(self) -> UInt64:
        campaign_id = self.latest_campaign_id.value
        assert campaign_id != 0, "Campaign not configured"
        return campaign_id

    @arc4.abimethod(readonly=True)
    def campaign_id(self) -> UInt64:
        return self.latest_campaign_id.value

    @arc4.abimethod(readonly=True)
    def is_active(self) -> bool:
        campaign_id = self.latest_campaign_id.value
        if campaign_id not in self.campaigns:
            return False
        campaign = self.campaigns[campaign_id].copy()
        return not campaign.finalized.native and Global.latest_timestamp < campaign.end_timestamp.native

    @subroutine
    def _current_campaign(self) -> Campaign:
        campaign_id = self.latest_campaign_id.value
        assert campaign_id in self.campaigns, "Campaign not configured"
        return self.campaigns[campaign_id].copy()

    @subroutine
    def _only_owner(self) -> None:
        assert Txn.sender == self.owner.value, "Only the owner can call this method"
