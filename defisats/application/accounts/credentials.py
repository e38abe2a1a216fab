"""
Helpers for moving exchange credentials in and out of encrypted storage.
"""

from defisats.domain.accounts.entities import EncryptedCredentials, User
from defisats.domain.accounts.errors import MissingExchangeCredentialsError
from defisats.domain.accounts.ports import CredentialCipher
from defisats.domain.exchange.entities import LNMarketsCredentials
from defisats.domain.exchange.ports import ExchangeFactory


def encrypt_credentials(credentials: LNMarketsCredentials, cipher: CredentialCipher) -> EncryptedCredentials:
    return EncryptedCredentials(
        api_key=cipher.encrypt(credentials.api_key),
        api_secret=cipher.encrypt(credentials.api_secret),
        passphrase=cipher.encrypt(credentials.passphrase),
        testnet=credentials.testnet,
    )


def decrypt_credentials(user: User, cipher: CredentialCipher) -> LNMarketsCredentials:
    """Return the user's plaintext credentials.

    Raises:
        MissingExchangeCredentialsError: The user never linked an account.
        CredentialDecryptionError: The stored tokens do not match the key.
    """
    if user.credentials is None:
        raise MissingExchangeCredentialsError()
    stored = user.credentials
    return LNMarketsCredentials(
        api_key=cipher.decrypt(stored.api_key),
        api_secret=cipher.decrypt(stored.api_secret),
        passphrase=cipher.decrypt(stored.passphrase),
        testnet=stored.testnet,
    )


def check_credentials(credentials: LNMarketsCredentials, exchange_factory: ExchangeFactory) -> bool:
    """Ask LN Markets whether the credentials are accepted."""
    exchange = exchange_factory(credentials)
    try:
        return exchange.validate_credentials()
    finally:
        exchange.close()
