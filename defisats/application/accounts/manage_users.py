"""
Use cases: User administration (admin only).

Input: paging parameters / user id with new state
Output: UserPage / UserProfile
Side effects: Activates, deactivates or re-plans a user.
Failure cases: UserNotFoundError (404).
"""

import logging
from dataclasses import replace
from uuid import UUID

from defisats.application.accounts.dtos import UserPage, UserProfile
from defisats.domain.accounts.entities import PlanType
from defisats.domain.accounts.errors import UserNotFoundError
from defisats.domain.accounts.ports import UserRepository

logger = logging.getLogger(__name__)


class ListUsersUseCase:
    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def execute(self, limit: int = 50, offset: int = 0) -> UserPage:
        users = self._user_repo.list(limit=limit, offset=offset)
        return UserPage(
            items=[UserProfile.from_user(u) for u in users],
            total=self._user_repo.count(),
        )


class SetUserActiveUseCase:
    """Deactivating a user also ends their session."""

    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def execute(self, user_id: UUID, is_active: bool) -> UserProfile:
        user = self._user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        changes = {"is_active": is_active}
        if not is_active:
            changes["session_expires_at"] = None
        user = self._user_repo.update(replace(user, **changes))
        logger.info("User %s active=%s", user_id, is_active)
        return UserProfile.from_user(user)


class ChangeUserPlanUseCase:
    def __init__(self, user_repo: UserRepository) -> None:
        self._user_repo = user_repo

    def execute(self, user_id: UUID, plan_type: PlanType) -> UserProfile:
        user = self._user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        user = self._user_repo.update(replace(user, plan_type=plan_type))
        logger.info("User %s moved to plan %s", user_id, plan_type.value)
        return UserProfile.from_user(user)
