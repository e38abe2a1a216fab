"""
Encryption of exchange credentials at rest.

The Fernet key is derived from a configured passphrase so that operators
only manage one secret string.
"""

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from defisats.domain.accounts.errors import CredentialDecryptionError
from defisats.domain.accounts.ports import CredentialCipher


def derive_fernet_key(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class FernetCredentialCipher(CredentialCipher):
    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Encryption secret must not be empty")
        self._fernet = Fernet(derive_fernet_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str) -> str:
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise CredentialDecryptionError() from exc
        return plaintext.decode("utf-8")
