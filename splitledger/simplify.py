"""
Minimum cash flow settlement.

Greedy two-pointer match of the largest creditor against the largest debtor.
Sorting is stable, so equal magnitudes keep their input order. Produces at
most n - 1 settlements for n members with a non-zero balance.
"""

import logging
from collections.abc import Iterable

from .errors import SimplificationIntegrityError
from .models import Balance, Settlement

logger = logging.getLogger(__name__)


class _Party:
    __slots__ = ("balance", "remaining")

    def __init__(self, balance: Balance, remaining: int):
        self.balance = balance
        self.remaining = remaining


def minimize_transactions(balances: Iterable[Balance]) -> list[Settlement]:
    creditors: list[_Party] = []
    debtors: list[_Party] = []
    for balance in balances:
        if balance.net > 0:
            creditors.append(_Party(balance, balance.net))
        elif balance.net < 0:
            debtors.append(_Party(balance, -balance.net))

    creditors.sort(key=lambda p: p.remaining, reverse=True)
    debtors.sort(key=lambda p: p.remaining, reverse=True)

    settlements: list[Settlement] = []
    ci = di = 0
    while ci < len(creditors) and di < len(debtors):
        creditor = creditors[ci]
        debtor = debtors[di]
        amount = min(creditor.remaining, debtor.remaining)

        settlements.append(Settlement(
            from_member=debtor.balance.member,
            to_member=creditor.balance.member,
            from_name=debtor.balance.name,
            to_name=creditor.balance.name,
            amount=amount,
        ))
        creditor.remaining -= amount
        debtor.remaining -= amount

        if creditor.remaining == 0:
            ci += 1
        if debtor.remaining == 0:
            di += 1

    for side, parties in (("creditor", creditors), ("debtor", debtors)):
        for party in parties:
            if party.remaining != 0:
                logger.error("Unsettled %s %s: %d", side, party.balance.member, party.remaining)
                raise SimplificationIntegrityError(
                    f"Simplification integrity error: {side} {party.balance.member} "
                    f"has remaining balance {party.remaining}"
                )

    logger.debug("Simplified %d non-zero balances into %d settlements",
                 len(creditors) + len(debtors), len(settlements))
    return settlements
