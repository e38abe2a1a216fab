"""
Use cases: Automation CRUD.

Input: CreateAutomationCommand / UpdateAutomationCommand / ids
Output: Automation entities, AutomationStats, normalized configs
Side effects: Writes automation rows.
Failure cases: AutomationNotFoundError (404), DuplicateActiveAutomationError (409),
    InvalidAutomationConfigError / UnknownAutomationTypeError (400),
    PlanRestrictionError (403).
"""

import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from defisats.application.automation.dtos import (
    AutomationStats,
    CreateAutomationCommand,
    UpdateAutomationCommand,
)
from defisats.domain.accounts.entities import PlanType
from defisats.domain.accounts.plans import ensure_automation_allowed
from defisats.domain.automation.configs import parse_automation_type, validate_config
from defisats.domain.automation.entities import Automation, AutomationType
from defisats.domain.automation.errors import (
    AutomationNotFoundError,
    DuplicateActiveAutomationError,
)
from defisats.domain.automation.ports import AutomationRepository

logger = logging.getLogger(__name__)


def _owned(repo: AutomationRepository, user_id: UUID, automation_id: UUID) -> Automation:
    automation = repo.get(automation_id)
    if automation is None or automation.user_id != user_id:
        raise AutomationNotFoundError(str(automation_id))
    return automation


def _ensure_can_activate(
    repo: AutomationRepository,
    user_id: UUID,
    plan_type: PlanType,
    automation_type: AutomationType,
    exclude_id: Optional[UUID] = None,
) -> None:
    ensure_automation_allowed(plan_type, automation_type.value)
    active = repo.find_active(user_id, automation_type)
    if active is not None and active.id != exclude_id:
        raise DuplicateActiveAutomationError(automation_type.value)


class CreateAutomationUseCase:
    def __init__(self, automation_repo: AutomationRepository) -> None:
        self._repo = automation_repo

    def execute(self, command: CreateAutomationCommand) -> Automation:
        automation_type = parse_automation_type(command.type)
        config = validate_config(automation_type, command.config)
        if command.is_active:
            _ensure_can_activate(self._repo, command.user_id, command.plan_type, automation_type)
        else:
            ensure_automation_allowed(command.plan_type, automation_type.value)

        automation = self._repo.add(Automation(
            id=uuid4(),
            user_id=command.user_id,
            type=automation_type,
            config=config,
            is_active=command.is_active,
            created_at=datetime.now(timezone.utc),
        ))
        logger.info("Automation %s (%s) created for user %s", automation.id, automation_type.value, command.user_id)
        return automation


class ListAutomationsUseCase:
    def __init__(self, automation_repo: AutomationRepository) -> None:
        self._repo = automation_repo

    def execute(
        self,
        user_id: UUID,
        automation_type: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[Automation]:
        parsed = parse_automation_type(automation_type) if automation_type else None
        return self._repo.list_for_user(user_id, parsed, is_active)


class GetAutomationUseCase:
    def __init__(self, automation_repo: AutomationRepository) -> None:
        self._repo = automation_repo

    def execute(self, user_id: UUID, automation_id: UUID) -> Automation:
        return _owned(self._repo, user_id, automation_id)


class UpdateAutomationUseCase:
    """Updates config and/or active flag. Configs are re-validated against the stored type."""

    def __init__(self, automation_repo: AutomationRepository) -> None:
        self._repo = automation_repo

    def execute(self, command: UpdateAutomationCommand) -> Automation:
        automation = _owned(self._repo, command.user_id, command.automation_id)
        changes: dict[str, Any] = {}
        if command.config is not None:
            changes["config"] = validate_config(automation.type, command.config)
        if command.is_active is not None:
            if command.is_active and not automation.is_active:
                _ensure_can_activate(
                    self._repo, command.user_id, command.plan_type, automation.type, exclude_id=automation.id
                )
            changes["is_active"] = command.is_active
        if not changes:
            return automation
        return self._repo.update(replace(automation, **changes))


class ToggleAutomationUseCase:
    def __init__(self, automation_repo: AutomationRepository) -> None:
        self._repo = automation_repo

    def execute(self, user_id: UUID, plan_type: PlanType, automation_id: UUID) -> Automation:
        automation = _owned(self._repo, user_id, automation_id)
        if not automation.is_active:
            _ensure_can_activate(self._repo, user_id, plan_type, automation.type, exclude_id=automation.id)
        updated = self._repo.update(replace(automation, is_active=not automation.is_active))
        logger.info("Automation %s active=%s", automation_id, updated.is_active)
        return updated


class DeleteAutomationUseCase:
    def __init__(self, automation_repo: AutomationRepository) -> None:
        self._repo = automation_repo

    def execute(self, user_id: UUID, automation_id: UUID) -> None:
        automation = _owned(self._repo, user_id, automation_id)
        self._repo.delete(automation.id)
        logger.info("Automation %s deleted", automation_id)


class AutomationStatsUseCase:
    def __init__(self, automation_repo: AutomationRepository) -> None:
        self._repo = automation_repo

    def execute(self, user_id: UUID) -> AutomationStats:
        automations = self._repo.list_for_user(user_id)
        active = sum(1 for a in automations if a.is_active)
        return AutomationStats(
            total=len(automations),
            active=active,
            inactive=len(automations) - active,
            by_type=dict(Counter(a.type.value for a in automations)),
            recent=automations[:5],
        )


class ValidateAutomationConfigUseCase:
    """Dry-run validation; returns the config with defaults filled in."""

    def execute(self, automation_type: str, config: dict[str, Any]) -> dict[str, Any]:
        return validate_config(parse_automation_type(automation_type), config)
