"""
Balance ledger and raw debt graph.

compute_net_balances:
    payer.net        += expense.total_amount
    split.member.net -= split.share_amount
    payment.from.net += payment.amount
    payment.to.net   -= payment.amount

Positive net means the member is owed money, negative means they owe.
Only approved expenses may be passed in; callers filter by status.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Optional
from uuid import UUID

from .errors import LedgerIntegrityError
from .models import Balance, DebtEdge, Expense, ExpenseStatus, Member, Payment

logger = logging.getLogger(__name__)


def _approved(expenses: Iterable[Expense]) -> list[Expense]:
    return [e for e in expenses if e.status == ExpenseStatus.APPROVED]


def compute_net_balances(
    group_members: Iterable[UUID],
    approved_expenses: Iterable[Expense],
    payments: Iterable[Payment],
    names: Optional[Mapping[UUID, Member]] = None,
) -> list[Balance]:
    names = names or {}
    net_map: dict[UUID, int] = {member_id: 0 for member_id in group_members}

    for expense in _approved(approved_expenses):
        if expense.payer in net_map:
            net_map[expense.payer] += expense.total_amount
        for split in expense.splits:
            if split.member in net_map:
                net_map[split.member] -= split.share_amount

    for payment in payments:
        if payment.from_member in net_map:
            net_map[payment.from_member] += payment.amount
        if payment.to_member in net_map:
            net_map[payment.to_member] -= payment.amount

    total_net = sum(net_map.values())
    if total_net != 0:
        logger.error("Net balances sum to %d instead of 0", total_net)
        raise LedgerIntegrityError(total_net)

    return [
        Balance(member=member_id, name=names[member_id].name if member_id in names else "Unknown", net=net)
        for member_id, net in net_map.items()
    ]


def build_raw_debt_graph(
    approved_expenses: Iterable[Expense],
    names: Optional[Mapping[UUID, Member]] = None,
) -> list[DebtEdge]:
    """Who owes whom per expense, before netting. For display only."""
    names = names or {}
    edge_map: dict[tuple[UUID, UUID], int] = {}

    for expense in _approved(approved_expenses):
        for split in expense.splits:
            if split.member == expense.payer:
                continue
            key = (split.member, expense.payer)
            edge_map[key] = edge_map.get(key, 0) + split.share_amount

    def _name(member_id: UUID) -> str:
        return names[member_id].name if member_id in names else "Unknown"

    return [
        DebtEdge(from_member=debtor, to_member=creditor, from_name=_name(debtor), to_name=_name(creditor), amount=amount)
        for (debtor, creditor), amount in edge_map.items()
        if amount > 0
    ]
