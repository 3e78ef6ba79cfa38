"""
Client configuration.

Values come from the environment; a `.env` file is loaded first.

Environment variables:
- VAULT_ROCKET_ADDRESS, CUSDT_ADDRESS: Deployed application addresses
- SUPPORTED_NETWORK: Genesis id the client accepts (default localnet-v1)
- DECRYPT_DURATION_DAYS: Validity of a decryption authorization (default 10)
- OPERATOR_APPROVAL_DAYS: Length of the vault's operator approval (default 30)
- LOG_LEVEL: Logging level (default INFO)
"""

import logging
import os
from dataclasses import dataclass

from algosdk import encoding
from dotenv import load_dotenv


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class ClientConfig:
    vault_rocket_address: str = ""
    cusdt_address: str = ""
    supported_network: str = "localnet-v1"
    decrypt_duration_days: int = 10
    operator_approval_days: int = 30

    @property
    def addresses_ready(self) -> bool:
        return (
            encoding.is_valid_address(self.vault_rocket_address)
            and encoding.is_valid_address(self.cusdt_address)
        )


def load_config() -> ClientConfig:
    """Build the client configuration from `.env` and the environment."""
    load_dotenv()

    return ClientConfig(
        vault_rocket_address=os.getenv("VAULT_ROCKET_ADDRESS", ""),
        cusdt_address=os.getenv("CUSDT_ADDRESS", ""),
        supported_network=os.getenv("SUPPORTED_NETWORK", "localnet-v1"),
        decrypt_duration_days=int(os.getenv("DECRYPT_DURATION_DAYS", "10")),
        operator_approval_days=int(os.getenv("OPERATOR_APPROVAL_DAYS", "30")),
    )


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(format=LOG_FORMAT, level=(level or os.getenv("LOG_LEVEL", "INFO")).upper())
