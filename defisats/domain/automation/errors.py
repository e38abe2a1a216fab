"""
Domain-specific errors for the automation bounded context.
"""

from defisats.domain.errors import ConflictError, DomainValidationError, NotFoundError


class AutomationNotFoundError(NotFoundError):
    def __init__(self, automation_id: str) -> None:
        super().__init__(f"Automation not found: {automation_id}")
        self.automation_id = automation_id


class DuplicateActiveAutomationError(ConflictError):
    """Only one active automation of each type is allowed per user."""

    def __init__(self, automation_type: str) -> None:
        super().__init__(f"An active {automation_type} automation already exists")
        self.automation_type = automation_type


class InvalidAutomationConfigError(DomainValidationError):
    def __init__(self, automation_type: str, errors: list[str]) -> None:
        super().__init__(f"Invalid {automation_type} config: " + "; ".join(errors))
        self.automation_type = automation_type
        self.errors = errors


class UnknownAutomationTypeError(DomainValidationError):
    def __init__(self, automation_type: str) -> None:
        super().__init__(f"Unknown automation type: {automation_type}")
        self.automation_type = automation_type
