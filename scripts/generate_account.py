"""
Account Generator Script for VaultRocket

Creates accounts for the fundraiser (deployer) and for contributors, and
prints the lines to add to .env.

Usage:
    python scripts/generate_account.py --name deployer
    python scripts/generate_account.py --name contributor --count 3
    python scripts/generate_account.py --check
"""

import argparse
import os

from algosdk import account, mnemonic
from dotenv import load_dotenv

load_dotenv()


def generate_standalone_account() -> tuple[str, str, str]:
    """
    Generate a standalone account.

    Returns:
        Tuple of (address, private_key, mnemonic_phrase)
    """
    private_key, address = account.generate_account()
    mnemonic_phrase = mnemonic.from_private_key(private_key)

    return address, private_key, mnemonic_phrase


def env_prefix(name: str) -> str:
    return name.upper().replace("-", "_")


def check_account(name: str):
    """Show the address stored in .env for an account name."""
    phrase = os.getenv(f"{env_prefix(name)}_MNEMONIC")
    if not phrase:
        print(f"❌ No {env_prefix(name)}_MNEMONIC in environment")
        return

    try:
        private_key = mnemonic.to_private_key(phrase)
    except Exception as e:
        print(f"❌ Invalid mnemonic: {e}")
        return

    print(f"\n📍 {name}: {account.address_from_private_key(private_key)}")


def main():
    parser = argparse.ArgumentParser(description="Generate accounts for VaultRocket")
    parser.add_argument(
        "--name",
        type=str,
        default="deployer",
        help="Account name, used as the .env variable prefix"
    )
    parser.add_argument(
        "--count",
        type=int,
        default=1,
        help="Number of accounts to generate"
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only show the address of the account already in .env"
    )

    args = parser.parse_args()

    print("\n🚀 VaultRocket - Account Generator\n")
    print("=" * 50)

    if args.check:
        check_account(args.name)
    else:
        for index in range(args.count):
            name = args.name if args.count == 1 else f"{args.name}_{index + 1}"
            address, _, mnemonic_phrase = generate_standalone_account()

            print(f"\n✅ Account '{name}' generated!")
            print(f"   Address: {address}")
            print(f"\n⚠️  SAVE THIS MNEMONIC (never share it!):")
            print(f"   {mnemonic_phrase}")
            print(f"\n📋 Add to .env file:")
            print(f"   {env_prefix(name)}_MNEMONIC={mnemonic_phrase}")
            print(f"   {env_prefix(name)}_ADDRESS={address}")

    print("\n" + "=" * 50)
    print("Done!\n")


if __name__ == "__main__":
    main()
