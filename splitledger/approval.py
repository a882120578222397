"""
Expense approval voting.

    pending --(approvals >= required)--> approved
    pending --(rejections > size - required)--> rejected

Both outcomes are terminal.
"""

import logging
from uuid import UUID

from .errors import AlreadyDecidedError, DuplicateVoteError, NotAMemberError
from .models import ApprovalChoice, ApprovalVote, Expense, ExpenseStatus

logger = logging.getLogger(__name__)


def required_approvals(group_size: int) -> int:
    # ceil(size / 2)
    return (group_size + 1) // 2


def initial_status(group_size: int) -> ExpenseStatus:
    return ExpenseStatus.APPROVED if group_size == 1 else ExpenseStatus.PENDING


def decide_status(approve_count: int, reject_count: int, group_size: int, required: int) -> ExpenseStatus:
    if approve_count >= required:
        return ExpenseStatus.APPROVED
    if reject_count > group_size - required:
        return ExpenseStatus.REJECTED
    return ExpenseStatus.PENDING


def check_can_vote(expense: Expense, voter: UUID, group_members: list[UUID]) -> None:
    if not expense.is_pending():
        raise AlreadyDecidedError(f"Expense is already {expense.status.value}")
    if voter not in group_members:
        raise NotAMemberError("You are not a member of this group")


def apply_vote(expense: Expense, voter: UUID, choice: ApprovalChoice, group_size: int) -> Expense:
    """Return a copy of ``expense`` with the vote recorded and its status re-decided.

    The caller is expected to have run the membership and governance checks.
    """
    if not expense.is_pending():
        raise AlreadyDecidedError(f"Expense is already {expense.status.value}")
    if expense.has_voted(voter):
        raise DuplicateVoteError("You have already voted on this expense")

    approvals = expense.approvals + [ApprovalVote(expense=expense.id, voter=voter, vote=choice)]
    updated = expense.model_copy(update={"approvals": approvals})
    status = decide_status(
        updated.count_votes(ApprovalChoice.APPROVE),
        updated.count_votes(ApprovalChoice.REJECT),
        group_size,
        expense.required_approvals,
    )
    if status != ExpenseStatus.PENDING:
        logger.info("Expense %s %s after %d votes", expense.id, status.value, len(approvals))
    return updated.model_copy(update={"status": status})
