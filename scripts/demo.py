"""
End-to-end demo of a VaultRocket campaign.

Deploys the contracts, runs a campaign with one contributor through the
client, and shows what each party can decrypt.

Usage:
    python scripts/demo.py
    python scripts/demo.py --amount 1.25 --target 2 --duration 3600
"""

import argparse
import asyncio
import os

from client.amounts import format_amount
from client.app import VaultRocketClient
from client.config import configure_logging, load_config
from client.errors import ClientError
from client.instance import create_instance
from client.relayer import Relayer
from client.wallet import Wallet
from contracts.deploy import deploy_vault_rocket
from contracts.fhe.coprocessor import Coprocessor
from contracts.localnet import LocalNet


def section(title: str):
    print("\n" + "=" * 50)
    print(f"🧪 {title}")
    print("=" * 50)


async def run(localnet: LocalNet, amount: str, target: str, duration: int):
    phrase = os.getenv("DEPLOYER_MNEMONIC")
    owner = Wallet.from_mnemonic(phrase) if phrase else Wallet.generate()
    alice = Wallet.generate()

    section("Deployment")
    deployment = deploy_vault_rocket(localnet, owner.address)
    print(f"   cUSDT:       {deployment.token_address}")
    print(f"   VaultRocket: {deployment.vault_address}")

    config = load_config()
    config.vault_rocket_address = deployment.vault_address
    config.cusdt_address = deployment.token_address
    config.supported_network = localnet.genesis_id
    instance = await create_instance(Relayer(localnet))
    fundraiser = VaultRocketClient(localnet, config, instance, owner)
    contributor = VaultRocketClient(localnet, config, instance, alice)

    section("Campaign")
    await fundraiser.start_campaign("Demo Launch", target, localnet.latest_timestamp + duration)
    state = await fundraiser.refresh_state()
    print(f"   Campaign #{state.campaign_id}: {state.campaign.name} ({state.status}, {state.countdown})")

    section("Contribution")
    await contributor.mint("5")
    await contributor.approve_operator()
    receipt = await contributor.contribute(amount)
    print(f"   ✅ Contribution confirmed! TX: {receipt.tx_id}")

    mine = await contributor.refresh_state()
    print(f"   Alice sees her total: {format_amount(mine.user_contribution)} cUSDT")
    print(f"   Alice sees the campaign total: {format_amount(mine.total_raised)}")
    overview = await fundraiser.refresh_state()
    print(f"   Owner sees the campaign total: {format_amount(overview.total_raised)} cUSDT")

    section("Close")
    before = await fundraiser.my_balance()
    receipt = await fundraiser.close()
    after = await fundraiser.my_balance()
    print(f"   ✅ Closed! TX: {receipt.tx_id}")
    print(f"   Owner balance: {format_amount(before)} -> {format_amount(after)} cUSDT")

    try:
        await contributor.contribute(amount)
    except ClientError as e:
        print(f"   Late contribution rejected: {e}")


def main():
    parser = argparse.ArgumentParser(description="Run a VaultRocket campaign end to end")
    parser.add_argument("--amount", default="1.25", help="Contribution in cUSDT")
    parser.add_argument("--target", default="2", help="Campaign target in cUSDT")
    parser.add_argument("--duration", type=int, default=3600, help="Campaign length in seconds")
    parser.add_argument("--key-length", type=int, default=1024, help="Coprocessor key size in bits")
    args = parser.parse_args()

    configure_logging("WARNING")

    print("\n" + "=" * 60)
    print("🚀 VAULTROCKET - CONFIDENTIAL FUNDRAISING DEMO")
    print("=" * 60)

    with LocalNet(Coprocessor(key_length=args.key_length)) as localnet:
        asyncio.run(run(localnet, args.amount, args.target, args.duration))

    print("\n" + "=" * 60)
    print("🎉 DEMO COMPLETED!")
    print("=" * 60)


if __name__ == "__main__":
    main()
