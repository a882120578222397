"""
Governance gate.

Overdue members may still pay and view, but may not create expenses, vote
on expenses, cast overdue votes or create groups. Every service entry point
that performs one of those actions calls ``GovernanceGate.require`` first.
"""

import logging
from enum import Enum
from typing import Protocol
from uuid import UUID

from .errors import GovernanceRestrictedError
from .models import MemberState

logger = logging.getLogger(__name__)


class GovernedAction(str, Enum):
    CREATE_EXPENSE = "create_expense"
    VOTE_EXPENSE = "vote_expense"
    OVERDUE_VOTE = "overdue_vote"
    CREATE_GROUP = "create_group"
    PAYMENT = "payment"
    VIEW = "view"


BLOCKED_ACTIONS = frozenset({
    GovernedAction.CREATE_EXPENSE,
    GovernedAction.VOTE_EXPENSE,
    GovernedAction.OVERDUE_VOTE,
    GovernedAction.CREATE_GROUP,
})


class StatusSource(Protocol):
    def get_member_status(self, group_id: UUID, member_id: UUID) -> MemberState: ...

    def groups_for_member(self, member_id: UUID) -> list[UUID]: ...


class GovernanceGate:
    def __init__(self, statuses: StatusSource):
        self.statuses = statuses

    def is_active_member(self, group_id: UUID, member_id: UUID) -> bool:
        return self.statuses.get_member_status(group_id, member_id) == MemberState.ACTIVE

    def is_overdue_anywhere(self, member_id: UUID) -> bool:
        return any(
            not self.is_active_member(group_id, member_id)
            for group_id in self.statuses.groups_for_member(member_id)
        )

    def require(self, action: GovernedAction, group_id: UUID, member_id: UUID) -> None:
        if action not in BLOCKED_ACTIONS:
            return
        if not self.is_active_member(group_id, member_id):
            logger.warning("Refused %s for overdue member %s in group %s", action.value, member_id, group_id)
            raise GovernanceRestrictedError()

    def require_for_new_group(self, member_id: UUID) -> None:
        # no group context yet: overdue in any group blocks group creation
        if self.is_overdue_anywhere(member_id):
            logger.warning("Refused %s for member %s overdue elsewhere", GovernedAction.CREATE_GROUP.value, member_id)
            raise GovernanceRestrictedError()
