"""
Overdue governance.

A member becomes ``overdue`` once at least ceil(0.75 * group size) live
``mark_overdue`` votes target them, and returns to ``active`` when the
tally drops below that. Independently of votes, a member whose debt is
settled or below the group threshold is forced back to ``active``
whenever balances are recomputed.
"""

import logging
from collections.abc import Iterable, Mapping
from uuid import UUID

from .errors import NotAMemberError, SelfReferenceError
from .models import Balance, MemberState, OverdueChoice, OverdueVote

logger = logging.getLogger(__name__)


def required_overdue_votes(group_size: int) -> int:
    # ceil(0.75 * size) without floats
    return (3 * group_size + 3) // 4


def check_overdue_vote(voter: UUID, target: UUID, group_members: list[UUID]) -> None:
    if voter not in group_members:
        raise NotAMemberError("You are not a member of this group")
    if target not in group_members:
        raise NotAMemberError("Target member is not a member of this group")
    if voter == target:
        raise SelfReferenceError("Cannot vote on your own overdue status")


def count_mark_votes(votes: Iterable[OverdueVote]) -> int:
    return sum(1 for v in votes if v.vote == OverdueChoice.MARK_OVERDUE)


def tally_overdue(votes: Iterable[OverdueVote], group_size: int) -> MemberState:
    """Recount every live vote; there are no running counters to drift."""
    if count_mark_votes(votes) >= required_overdue_votes(group_size):
        return MemberState.OVERDUE
    return MemberState.ACTIVE


def should_auto_clear(balance: Balance, threshold: int) -> bool:
    return balance.net >= 0 or abs(balance.net) < threshold


def auto_resolve(
    balances: Iterable[Balance],
    threshold: int,
    current: Mapping[UUID, MemberState],
) -> list[UUID]:
    """Members whose ``overdue`` status must be lifted given the latest balances.

    Members already ``active`` (or absent, which means active) are not returned.
    """
    cleared = [
        b.member for b in balances
        if current.get(b.member, MemberState.ACTIVE) == MemberState.OVERDUE
        and should_auto_clear(b, threshold)
    ]
    if cleared:
        logger.info("Auto-clearing overdue status for %d member(s)", len(cleared))
    return cleared
