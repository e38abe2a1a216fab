"""
Base domain errors shared by every bounded context.

Each context subclasses one of these families. The interface layer
maps families (not individual errors) to HTTP status codes.
No framework imports allowed.
"""


class DomainError(Exception):
    """Base error for all domain errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class NotFoundError(DomainError):
    """A requested row does not exist (or is not visible to the caller)."""


class ConflictError(DomainError):
    """The operation would violate a uniqueness or state constraint."""


class DomainValidationError(DomainError):
    """Input is well-formed but breaks a business rule."""


class AuthenticationError(DomainError):
    """Credentials or tokens are missing, wrong or expired."""


class PermissionDeniedError(DomainError):
    """The caller is authenticated but not allowed to do this."""


class ExternalServiceError(DomainError):
    """An upstream service (exchange, Lightning node) failed."""
