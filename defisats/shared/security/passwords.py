"""
Password hashing adapter.

Implements the PasswordHasher port with passlib's CryptContext.
"""

from passlib.context import CryptContext

from defisats.domain.accounts.ports import PasswordHasher


class PasslibPasswordHasher(PasswordHasher):
    """PBKDF2-SHA256 hashes; older schemes listed later would be marked deprecated."""

    def __init__(self, schemes: list[str] | None = None) -> None:
        self._context = CryptContext(schemes=schemes or ["pbkdf2_sha256"], deprecated="auto")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return self._context.verify(password, password_hash)
        except ValueError:
            # Unrecognized hash format
            return False
