"""
Split calculation.

Shares are integer minor units and always sum exactly to the expense total.
"""

from collections.abc import Iterable, Sequence
from typing import Optional
from uuid import UUID

from .errors import InvalidAmountError, NotAMemberError, SplitMismatchError
from .models import Split, SplitEntry
from .money import is_valid_minor_units, require_positive_amount


def equal_split(total_amount: int, participants: Sequence[UUID]) -> list[Split]:
    """Divide ``total_amount`` across ``participants`` in the order given.

    The first ``total % n`` participants get one extra minor unit, e.g.
    100 over 3 -> 34, 33, 33.
    """
    require_positive_amount(total_amount, "Total amount")
    if not participants:
        raise InvalidAmountError("Split members are required for an equal split")
    if len(set(participants)) != len(participants):
        raise InvalidAmountError("Duplicate members in split")

    count = len(participants)
    base = total_amount // count
    remainder = total_amount - base * count
    return [
        Split(member=member, share_amount=base + (1 if index < remainder else 0))
        for index, member in enumerate(participants)
    ]


def custom_split(
    total_amount: int,
    entries: Iterable[SplitEntry],
    group_members: Optional[Iterable[UUID]] = None,
) -> list[Split]:
    require_positive_amount(total_amount, "Total amount")
    entries = list(entries)
    if not entries:
        raise InvalidAmountError("Splits are required")

    allowed = set(group_members) if group_members is not None else None
    seen: set[UUID] = set()
    split_sum = 0
    for entry in entries:
        if allowed is not None and entry.member not in allowed:
            raise NotAMemberError(f"Member {entry.member} is not a member of this group")
        if entry.member in seen:
            raise InvalidAmountError("Duplicate members in splits")
        seen.add(entry.member)
        if not is_valid_minor_units(entry.share_amount):
            raise InvalidAmountError("Each share amount must be a non-negative integer (minor units)")
        split_sum += entry.share_amount

    if split_sum != total_amount:
        raise SplitMismatchError(split_sum, total_amount)

    return [Split(member=e.member, share_amount=e.share_amount) for e in entries]
