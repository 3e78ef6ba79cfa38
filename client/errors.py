"""
Errors surfaced to the user by the VaultRocket client.

Messages are meant to be shown as-is. None of these are retried
automatically; the user fixes the condition and tries again.
"""


class ClientError(Exception):
    pass


class EncryptionServiceNotReady(ClientError):
    def __init__(self, message: str = "Encryption service not ready yet."):
        super().__init__(message)


class ServiceUnavailable(ClientError):
    def __init__(self, message: str = "Decryption service is unreachable."):
        super().__init__(message)


class SignatureUnavailable(ClientError):
    def __init__(self, message: str = "Wallet signature unavailable."):
        super().__init__(message)


class DecryptionRejected(ClientError):
    pass


class AddressesNotConfigured(ClientError):
    def __init__(self, message: str = "Contract addresses are missing. Deploy and set them first."):
        super().__init__(message)


class WalletNotConnected(ClientError):
    def __init__(self, message: str = "Connect your wallet to continue."):
        super().__init__(message)


class UnsupportedNetwork(ClientError):
    pass


class InvalidAmount(ClientError):
    pass


class NotCampaignOwner(ClientError):
    pass


class CampaignNotInitialized(ClientError):
    def __init__(self, message: str = "Campaign not initialized."):
        super().__init__(message)


class TransactionFailed(ClientError):
    pass
