from typing import Optional


class SplitLedgerError(Exception):
    pass


class InvalidAmountError(SplitLedgerError):
    pass


class SplitMismatchError(SplitLedgerError):
    def __init__(self, split_sum: int, total_amount: int):
        self.split_sum = split_sum
        self.total_amount = total_amount
        super().__init__(
            f"Sum of shares ({split_sum}) does not equal total amount ({total_amount})"
        )


class NotAuthorizedError(SplitLedgerError):
    pass


class NotAMemberError(NotAuthorizedError):
    pass


class DuplicateVoteError(SplitLedgerError):
    pass


class AlreadyDecidedError(SplitLedgerError):
    pass


class SelfReferenceError(SplitLedgerError):
    pass


class OverpaymentError(SplitLedgerError):
    def __init__(self, amount: int, max_payable: int):
        self.amount = amount
        self.max_payable = max_payable
        super().__init__(
            f"Payment amount ({amount}) exceeds maximum payable ({max_payable})"
        )


class RoleMismatchError(SplitLedgerError):
    pass


class GovernanceRestrictedError(SplitLedgerError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Overdue members are restricted from governance actions but may still settle debts."
        )


class NotFoundError(SplitLedgerError):
    pass


class GroupNotFoundError(NotFoundError):
    pass


class ExpenseNotFoundError(NotFoundError):
    pass


class IntegrityViolation(Exception):
    """Fatal invariant breach. Never caught by request handlers."""


class LedgerIntegrityError(IntegrityViolation):
    def __init__(self, net_sum: int):
        self.net_sum = net_sum
        super().__init__(f"Balance inconsistency detected: net sum is {net_sum}, expected 0")


class SimplificationIntegrityError(IntegrityViolation):
    pass
