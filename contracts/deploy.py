"""
Deployment of the VaultRocket contracts onto a local network.
"""

import logging
from dataclasses import dataclass

from contracts.confidential_token.contract import ConfidentialUSDT
from contracts.vault_rocket.contract import VaultRocket


logger = logging.getLogger(__name__)

# 1,000,000 cUSDT with 6 decimals
INITIAL_MINT = 1_000_000 * 1_000_000


@dataclass
class Deployment:
    network: str
    deployer: str
    token: ConfidentialUSDT
    vault: VaultRocket
    token_address: str
    vault_address: str


def deploy_vault_rocket(localnet, deployer: str, initial_mint: int = INITIAL_MINT) -> Deployment:
    """
    Deploy cUSDT and a VaultRocket paying in it, then seed the deployer.

    Args:
        localnet: Target network
        deployer: Address that deploys and owns both contracts
        initial_mint: cUSDT base units minted to the deployer (0 to skip)

    Returns:
        The deployed contracts
    """
    token = localnet.deploy(ConfidentialUSDT, sender=deployer)
    vault = localnet.deploy(VaultRocket, localnet.app_id(token), sender=deployer)

    if initial_mint:
        localnet.call(deployer, token.mint, deployer, initial_mint)
        logger.info("Seeded deployer %s with %d cUSDT units", deployer, initial_mint)

    return Deployment(
        network=localnet.genesis_id,
        deployer=deployer,
        token=token,
        vault=vault,
        token_address=localnet.address(token),
        vault_address=localnet.address(vault),
    )
