"""
Domain-specific errors for the accounts bounded context.

These are mapped to HTTP responses at the interface layer.
"""

from defisats.domain.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class EmailAlreadyRegisteredError(ConflictError):
    def __init__(self, email: str) -> None:
        super().__init__("Email already registered")
        self.email = email


class UsernameTakenError(ConflictError):
    def __init__(self, username: str) -> None:
        super().__init__("Username already taken")
        self.username = username


class InvalidLoginError(AuthenticationError):
    """Wrong email or password. The message never says which."""

    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class InvalidTokenError(AuthenticationError):
    def __init__(self, reason: str = "Invalid or expired token") -> None:
        super().__init__(reason)


class SessionExpiredError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("Session expired, please log in again")


class InactiveAccountError(PermissionDeniedError):
    def __init__(self) -> None:
        super().__init__("Account is inactive")


class AdminRequiredError(PermissionDeniedError):
    def __init__(self) -> None:
        super().__init__("Administrator privileges required")


class PlanRestrictionError(PermissionDeniedError):
    """The user's plan does not include the requested automation type."""

    def __init__(self, plan: str, automation_type: str) -> None:
        super().__init__(f"Plan '{plan}' does not include '{automation_type}' automations")
        self.plan = plan
        self.automation_type = automation_type


class MissingExchangeCredentialsError(PermissionDeniedError):
    def __init__(self) -> None:
        super().__init__("No LN Markets credentials linked to this account")


class CredentialDecryptionError(AuthenticationError):
    """Stored credentials could not be decrypted with the current key."""

    def __init__(self) -> None:
        super().__init__("Stored credentials could not be decrypted")
