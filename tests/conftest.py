"""
Shared fixtures: a local network with a small coprocessor key, accounts,
deployed contracts and helpers to encrypt inputs and read decrypted values.
"""

import pytest
from phe import paillier

from client.config import ClientConfig
from client.instance import EncryptedInput, FheInstance
from client.relayer import Relayer
from client.wallet import Wallet
from contracts.deploy import deploy_vault_rocket
from contracts.fhe import proof as input_proofs
from contracts.fhe.coprocessor import Coprocessor
from contracts.localnet import LocalNet


GENESIS_TIMESTAMP = 1_700_000_000
HOUR = 3600


@pytest.fixture(scope="session")
def network_keypair():
    """Small key shared by all tests; key generation dominates otherwise."""
    return paillier.generate_paillier_keypair(n_length=512)


@pytest.fixture
def coprocessor(network_keypair) -> Coprocessor:
    return Coprocessor(keypair=network_keypair)


@pytest.fixture
def localnet(coprocessor):
    with LocalNet(coprocessor, timestamp=GENESIS_TIMESTAMP) as net:
        yield net


@pytest.fixture
def owner_wallet() -> Wallet:
    return Wallet.generate()


@pytest.fixture
def alice_wallet() -> Wallet:
    return Wallet.generate()


@pytest.fixture
def bob_wallet() -> Wallet:
    return Wallet.generate()


@pytest.fixture
def owner(owner_wallet) -> str:
    return owner_wallet.address


@pytest.fixture
def alice(alice_wallet) -> str:
    return alice_wallet.address


@pytest.fixture
def bob(bob_wallet) -> str:
    return bob_wallet.address


@pytest.fixture
def deployment(localnet, owner):
    return deploy_vault_rocket(localnet, owner, initial_mint=0)


@pytest.fixture
def token(deployment):
    return deployment.token


@pytest.fixture
def vault(deployment):
    return deployment.vault


@pytest.fixture
def token_address(deployment) -> str:
    return deployment.token_address


@pytest.fixture
def vault_address(deployment) -> str:
    return deployment.vault_address


@pytest.fixture
def encrypt(coprocessor):
    """Encrypt a value as `user` would for `contract_address`."""
    def _encrypt(contract_address: str, user: str, value: int):
        result = EncryptedInput(coprocessor.public_key, contract_address, user).add64(value).build()
        return result.handles[0], result.input_proof
    return _encrypt


@pytest.fixture
def decrypt(coprocessor):
    """Decrypt a handle for `user` through `contract_address`, enforcing the ACL."""
    def _decrypt(handle: str, user: str, contract_address: str) -> int:
        return coprocessor.user_decrypt_value(handle, user, contract_address)
    return _decrypt


@pytest.fixture
def forge_input(coprocessor):
    """
    Encrypt any integer with a valid knowledge proof, skipping the client's
    64-bit check. Returns (handle, input_proof).
    """
    def _forge(contract_address: str, user: str, plaintext: int):
        public_key = coprocessor.public_key
        r = input_proofs.random_coprime(public_key.n)
        ciphertext = public_key.raw_encrypt(plaintext, r_value=r)
        knowledge = input_proofs.prove(
            public_key, plaintext, r, ciphertext, input_proofs.binding(contract_address, user, 0)
        )
        handle = input_proofs.derive_handle(ciphertext, contract_address, user, 0)
        return handle, input_proofs.encode_input_proof(contract_address, user, [ciphertext], [knowledge])
    return _forge


@pytest.fixture
def fund(localnet, token, vault_address):
    """Mint cUSDT to a user and approve the vault as their operator."""
    def _fund(user: str, amount: int, approval_seconds: int = 30 * 24 * HOUR):
        localnet.call(user, token.mint, user, amount)
        localnet.call(user, token.set_operator, vault_address, localnet.latest_timestamp + approval_seconds)
    return _fund


@pytest.fixture
def open_campaign(localnet, vault, owner):
    """Configure the first campaign: "Demo", target 2 cUSDT, ends in one hour."""
    def _open(name: str = "Demo", target: int = 2_000_000, duration: int = HOUR) -> int:
        return localnet.call(
            owner, vault.configure_campaign, name, target, localnet.latest_timestamp + duration
        ).return_value
    return _open


@pytest.fixture
def relayer(localnet) -> Relayer:
    return Relayer(localnet)


@pytest.fixture
def instance(coprocessor, relayer) -> FheInstance:
    return FheInstance(coprocessor.public_key, relayer)


@pytest.fixture
def client_config(localnet, deployment) -> ClientConfig:
    return ClientConfig(
        vault_rocket_address=deployment.vault_address,
        cusdt_address=deployment.token_address,
        supported_network=localnet.genesis_id,
    )
