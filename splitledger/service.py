import logging
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Iterator, Optional
from uuid import UUID

from . import approval, overdue
from .balances import build_raw_debt_graph, compute_net_balances
from .config import Settings, get_settings
from .errors import (
    ExpenseNotFoundError,
    GroupNotFoundError,
    InvalidAmountError,
    NotAMemberError,
    NotAuthorizedError,
    OverpaymentError,
    RoleMismatchError,
    SelfReferenceError,
)
from .governance import GovernanceGate, GovernedAction
from .models import (
    Alert,
    ApprovalVoteRequest,
    Balance,
    CreateExpenseRequest,
    CreateGroupRequest,
    CreatePaymentRequest,
    DebtEdge,
    Expense,
    ExpenseStatus,
    Group,
    GroupSummary,
    Member,
    MemberState,
    OverdueStatusView,
    OverdueVote,
    OverdueVoteRequest,
    Payment,
    Settlement,
)
from .money import format_minor_units, is_valid_minor_units, require_positive_amount
from .simplify import minimize_transactions
from .splits import custom_split, equal_split
from .storage import InMemoryStorage
from .threshold import compute_threshold_alerts

logger = logging.getLogger(__name__)


class SplitLedgerService:
    """Upward-facing operations over one storage backend.

    Writes for a group run under that group's lock. Derived values
    (balances, settlements, statuses) are always rebuilt from stored facts.
    """

    def __init__(self, storage: Optional[InMemoryStorage] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.storage = storage if storage is not None else InMemoryStorage(seed=self.settings.seed_demo_data)
        self.gate = GovernanceGate(self.storage)
        self._locks: dict[UUID, RLock] = {}
        self._locks_guard = Lock()

    @contextmanager
    def _group_lock(self, group_id: UUID) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(group_id, RLock())
        with lock:
            yield

    # Groups

    def create_group(self, request: CreateGroupRequest) -> Group:
        for group_id in self.storage.groups_for_member(request.creator_id):
            with self._group_lock(group_id):
                self._refresh_statuses(self._require_group(group_id))
        self.gate.require_for_new_group(request.creator_id)

        threshold = request.settlement_threshold
        if threshold is None:
            threshold = self.settings.default_settlement_threshold
        if not is_valid_minor_units(threshold):
            raise InvalidAmountError("Settlement threshold must be a non-negative integer (minor units)")

        group = self.storage.save_group(Group(
            name=request.name,
            created_by=request.creator_id,
            members=[request.creator_id],
            settlement_threshold=threshold,
        ))
        logger.info("Group %s created by %s (threshold %d)", group.id, request.creator_id, threshold)
        return group

    def add_member(self, group_id: UUID, member: Member) -> Group:
        with self._group_lock(group_id):
            self._require_group(group_id)
            return self.storage.add_member(group_id, member)

    def get_group(self, group_id: UUID) -> Group:
        return self._require_group(group_id)

    # Expenses

    def add_expense(self, group_id: UUID, request: CreateExpenseRequest) -> Expense:
        with self._group_lock(group_id):
            group = self._require_group(group_id)
            if not group.has_member(request.creator_id):
                raise NotAuthorizedError("You are not a member of this group")
            self._refresh_statuses(group)
            self.gate.require(GovernedAction.CREATE_EXPENSE, group_id, request.creator_id)
            if not group.has_member(request.payer_id):
                raise NotAMemberError("Payer must be a member of the group")
            require_positive_amount(request.total_amount, "Total amount")

            if request.equal_split:
                if not request.split_members:
                    raise InvalidAmountError("Split members are required for an equal split")
                for member_id in request.split_members:
                    if not group.has_member(member_id):
                        raise NotAMemberError(f"Member {member_id} is not a member of this group")
                splits = equal_split(request.total_amount, request.split_members)
            else:
                splits = custom_split(request.total_amount, request.splits, group.members)

            expense = Expense(
                group=group_id,
                creator=request.creator_id,
                description=request.description,
                total_amount=request.total_amount,
                payer=request.payer_id,
                splits=splits,
                status=approval.initial_status(group.size),
                required_approvals=approval.required_approvals(group.size),
                is_recurring=request.is_recurring,
                recurrence=request.recurrence if request.is_recurring else None,
            )
            self.storage.record_expense(expense)

        logger.info("Expense %s (%s) created in group %s as %s",
                    expense.id, format_minor_units(expense.total_amount), group_id, expense.status.value)
        return expense

    def get_expense(self, expense_id: UUID) -> Expense:
        expense = self.storage.get_expense(expense_id)
        if not expense:
            raise ExpenseNotFoundError(f"Expense {expense_id} not found")
        return expense

    def cast_approval_vote(self, expense_id: UUID, request: ApprovalVoteRequest) -> Expense:
        group_id = self.get_expense(expense_id).group
        with self._group_lock(group_id):
            expense = self.get_expense(expense_id)
            group = self._require_group(group_id)
            approval.check_can_vote(expense, request.voter_id, group.members)
            self._refresh_statuses(group)
            self.gate.require(GovernedAction.VOTE_EXPENSE, group_id, request.voter_id)

            updated = approval.apply_vote(expense, request.voter_id, request.vote, group.size)
            self.storage.upsert_approval_vote(updated)
            if updated.status == ExpenseStatus.APPROVED:
                # an approved expense moves balances and may clear an overdue payer
                self._refresh_statuses(group)
            return updated

    def list_expenses(
        self, group_id: UUID, viewer_id: UUID, status: Optional[ExpenseStatus] = None
    ) -> list[Expense]:
        self._require_viewer(group_id, viewer_id)
        expenses = self.storage.list_expenses(group_id, status)
        expenses.sort(key=lambda e: e.created_at, reverse=True)
        return expenses

    def list_pending_expenses(self, group_id: UUID, viewer_id: UUID) -> list[Expense]:
        return self.list_expenses(group_id, viewer_id, ExpenseStatus.PENDING)

    # Payments

    def record_payment(self, group_id: UUID, request: CreatePaymentRequest) -> Payment:
        with self._group_lock(group_id):
            group = self._require_group(group_id)
            if not group.has_member(request.recorded_by):
                raise NotAuthorizedError("You are not a member of this group")
            self.gate.require(GovernedAction.PAYMENT, group_id, request.recorded_by)
            if not group.has_member(request.from_member):
                raise NotAMemberError("Debtor is not a member of this group")
            if not group.has_member(request.to_member):
                raise NotAMemberError("Creditor is not a member of this group")
            if request.from_member == request.to_member:
                raise SelfReferenceError("Cannot make a payment to yourself")
            require_positive_amount(request.amount)

            nets = {b.member: b.net for b in self._compute_balances(group)}
            debtor_net = nets.get(request.from_member, 0)
            creditor_net = nets.get(request.to_member, 0)
            if debtor_net >= 0:
                raise RoleMismatchError("The selected payer does not owe any money")
            if creditor_net <= 0:
                raise RoleMismatchError("The selected receiver is not owed any money")

            max_payable = min(-debtor_net, creditor_net)
            if request.amount > max_payable:
                raise OverpaymentError(request.amount, max_payable)

            payment = self.storage.record_payment(Payment(
                group=group_id,
                from_member=request.from_member,
                to_member=request.to_member,
                amount=request.amount,
                recorded_by=request.recorded_by,
            ))
            logger.info("Payment %s: %s -> %s (%s) in group %s",
                        payment.id, payment.from_member, payment.to_member, format_minor_units(payment.amount), group_id)
            self._auto_resolve(group, self._compute_balances(group))
            return payment

    def list_payments(self, group_id: UUID, viewer_id: UUID) -> list[Payment]:
        self._require_viewer(group_id, viewer_id)
        payments = self.storage.list_payments(group_id)
        payments.sort(key=lambda p: p.created_at, reverse=True)
        return payments

    # Derived views

    def get_balances(self, group_id: UUID, viewer_id: Optional[UUID] = None) -> list[Balance]:
        group = self._require_viewer(group_id, viewer_id)
        with self._group_lock(group_id):
            balances = self._compute_balances(group)
            self._auto_resolve(group, balances)
        return balances

    def get_raw_debt_graph(self, group_id: UUID, viewer_id: Optional[UUID] = None) -> list[DebtEdge]:
        self._require_viewer(group_id, viewer_id)
        return build_raw_debt_graph(self.storage.list_approved_expenses(group_id), self._names(group_id))

    def get_simplified_settlements(self, group_id: UUID, viewer_id: Optional[UUID] = None) -> list[Settlement]:
        return minimize_transactions(self.get_balances(group_id, viewer_id))

    def get_threshold_alerts(
        self, group_id: UUID, threshold: Optional[int] = None, viewer_id: Optional[UUID] = None
    ) -> list[Alert]:
        group = self._require_viewer(group_id, viewer_id)
        if threshold is None:
            threshold = group.settlement_threshold
        return compute_threshold_alerts(self.get_balances(group_id), threshold)

    def get_group_summary(self, group_id: UUID, viewer_id: UUID) -> GroupSummary:
        group = self._require_viewer(group_id, viewer_id)
        balances = self.get_balances(group_id)
        return GroupSummary(
            group=group_id,
            settlement_threshold=group.settlement_threshold,
            balances=balances,
            raw_graph=self.get_raw_debt_graph(group_id),
            simplified_graph=minimize_transactions(balances),
            threshold_alerts=compute_threshold_alerts(balances, group.settlement_threshold),
        )

    # Overdue governance

    def cast_overdue_vote(self, group_id: UUID, target_id: UUID, request: OverdueVoteRequest) -> OverdueStatusView:
        with self._group_lock(group_id):
            group = self._require_group(group_id)
            overdue.check_overdue_vote(request.voter_id, target_id, group.members)
            self._refresh_statuses(group)
            self.gate.require(GovernedAction.OVERDUE_VOTE, group_id, request.voter_id)

            self.storage.upsert_overdue_vote(OverdueVote(
                group=group_id, target=target_id, voter=request.voter_id, vote=request.vote,
            ))
            votes = self.storage.list_overdue_votes(group_id, target_id)
            previous = self.storage.get_member_status(group_id, target_id)
            status = overdue.tally_overdue(votes, group.size)
            record = self.storage.upsert_member_status(group_id, target_id, status)
            if status != previous:
                logger.info("Member %s in group %s is now %s", target_id, group_id, status.value)

            return self._status_view(group, target_id, record.status, votes)

    def get_overdue_status(self, group_id: UUID, viewer_id: UUID) -> list[OverdueStatusView]:
        group = self._require_viewer(group_id, viewer_id)
        with self._group_lock(group_id):
            self._refresh_statuses(group)
            statuses = self.storage.list_member_statuses(group_id)
            all_votes = self.storage.list_overdue_votes(group_id)
            return [
                self._status_view(
                    group, member_id, statuses.get(member_id, MemberState.ACTIVE),
                    [v for v in all_votes if v.target == member_id],
                )
                for member_id in group.members
            ]

    # Helpers

    def _require_group(self, group_id: UUID) -> Group:
        group = self.storage.get_group(group_id)
        if not group:
            raise GroupNotFoundError(f"Group {group_id} not found")
        return group

    def _require_viewer(self, group_id: UUID, viewer_id: Optional[UUID]) -> Group:
        group = self._require_group(group_id)
        if viewer_id is not None:
            if not group.has_member(viewer_id):
                raise NotAuthorizedError("You are not a member of this group")
            self.gate.require(GovernedAction.VIEW, group_id, viewer_id)
        return group

    def _names(self, group_id: UUID) -> dict[UUID, Member]:
        return {m.id: m for m in self.storage.list_members(group_id)}

    def _compute_balances(self, group: Group) -> list[Balance]:
        return compute_net_balances(
            group.members,
            self.storage.list_approved_expenses(group.id),
            self.storage.list_payments(group.id),
            self._names(group.id),
        )

    def _refresh_statuses(self, group: Group) -> None:
        """Re-run auto-resolution against current balances; caller holds the group lock."""
        self._auto_resolve(group, self._compute_balances(group))

    def _auto_resolve(self, group: Group, balances: list[Balance]) -> None:
        cleared = overdue.auto_resolve(
            balances, group.settlement_threshold, self.storage.list_member_statuses(group.id)
        )
        for member_id in cleared:
            self.storage.upsert_member_status(group.id, member_id, MemberState.ACTIVE)
            logger.info("Member %s in group %s auto-cleared to active", member_id, group.id)

    def _status_view(
        self, group: Group, member_id: UUID, status: MemberState, votes: list[OverdueVote]
    ) -> OverdueStatusView:
        member = self.storage.get_member(member_id)
        return OverdueStatusView(
            group=group.id,
            member=member_id,
            name=member.name if member else "Unknown",
            status=status,
            mark_overdue_votes=overdue.count_mark_votes(votes),
            required_votes=overdue.required_overdue_votes(group.size),
            votes=votes,
        )
