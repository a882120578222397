from collections.abc import Iterable

from .errors import InvalidAmountError
from .models import Alert, Balance
from .money import is_valid_minor_units


def compute_threshold_alerts(balances: Iterable[Balance], threshold: int) -> list[Alert]:
    """Debtors owing at least ``threshold``, largest debt first.

    A threshold of 0 alerts on any debt. Creditors and settled members never alert.
    """
    if not is_valid_minor_units(threshold):
        raise InvalidAmountError("Threshold must be a non-negative integer (minor units)")

    alerts = [
        Alert(member=b.member, name=b.name, amount_owed=-b.net)
        for b in balances
        if b.net < 0 and -b.net >= threshold
    ]
    alerts.sort(key=lambda a: a.amount_owed, reverse=True)
    return alerts
