from threading import RLock
from typing import Optional
from uuid import UUID

from .models import (
    ApprovalVote,
    Expense,
    ExpenseStatus,
    Group,
    Member,
    MemberState,
    MemberStatus,
    OverdueVote,
    Payment,
    utcnow,
)

DEMO_GROUP_ID = UUID("11111111-1111-1111-1111-111111111111")
DEMO_MEMBERS = (
    (UUID("550e8400-e29b-41d4-a716-446655440000"), "Asha Rao", "asha@example.com"),
    (UUID("660e8400-e29b-41d4-a716-446655440001"), "Bilal Khan", "bilal@example.com"),
    (UUID("770e8400-e29b-41d4-a716-446655440002"), "Chen Wei", "chen@example.com"),
)


class InMemoryStorage:
    """Member/group directory and event store backed by dicts.

    Writes are keyed by natural identity so repeating one is harmless.
    All groups share these dicts, so every read and write holds ``_lock``;
    the service still serializes writes per group on top of that.
    """

    def __init__(self, seed: bool = False):
        self._lock = RLock()
        self.members: dict[UUID, Member] = {}
        self.groups: dict[UUID, Group] = {}
        self.expenses: dict[UUID, Expense] = {}
        self.payments: dict[UUID, Payment] = {}
        self.overdue_votes: dict[tuple[UUID, UUID, UUID], OverdueVote] = {}
        self.member_statuses: dict[tuple[UUID, UUID], MemberStatus] = {}
        if seed:
            self._seed_data()

    def _seed_data(self):
        creator = DEMO_MEMBERS[0][0]
        for member_id, name, email in DEMO_MEMBERS:
            self.members[member_id] = Member(id=member_id, name=name, email=email)
        self.groups[DEMO_GROUP_ID] = Group(
            id=DEMO_GROUP_ID, name="Flat 4B", created_by=creator,
            members=[m[0] for m in DEMO_MEMBERS], settlement_threshold=50000,
        )

    # Directory

    def save_member(self, member: Member) -> Member:
        with self._lock:
            self.members[member.id] = member
            return member

    def get_member(self, member_id: UUID) -> Optional[Member]:
        with self._lock:
            return self.members.get(member_id)

    def save_group(self, group: Group) -> Group:
        with self._lock:
            self.groups[group.id] = group
            return group

    def get_group(self, group_id: UUID) -> Optional[Group]:
        with self._lock:
            return self.groups.get(group_id)

    def add_member(self, group_id: UUID, member: Member) -> Group:
        with self._lock:
            group = self.groups[group_id]
            self.save_member(member)
            if member.id not in group.members:
                group.members.append(member.id)
            return group

    def list_members(self, group_id: UUID) -> list[Member]:
        with self._lock:
            group = self.groups.get(group_id)
            if not group:
                return []
            return [self.members.get(m) or Member(id=m, name="Unknown") for m in group.members]

    def groups_for_member(self, member_id: UUID) -> list[UUID]:
        with self._lock:
            return [g.id for g in self.groups.values() if member_id in g.members]

    # Expenses

    def record_expense(self, expense: Expense) -> Expense:
        with self._lock:
            self.expenses[expense.id] = expense
            return expense

    def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        with self._lock:
            return self.expenses.get(expense_id)

    def list_expenses(self, group_id: UUID, status: Optional[ExpenseStatus] = None) -> list[Expense]:
        with self._lock:
            expenses = [e for e in self.expenses.values() if e.group == group_id]
        if status:
            expenses = [e for e in expenses if e.status == status]
        return expenses

    def list_approved_expenses(self, group_id: UUID) -> list[Expense]:
        return self.list_expenses(group_id, ExpenseStatus.APPROVED)

    def list_approval_votes(self, expense_id: UUID) -> list[ApprovalVote]:
        expense = self.get_expense(expense_id)
        return list(expense.approvals) if expense else []

    def upsert_approval_vote(self, expense: Expense) -> Expense:
        # the expense document owns its votes; replacing it records the new one
        return self.record_expense(expense)

    # Payments

    def record_payment(self, payment: Payment) -> Payment:
        with self._lock:
            self.payments[payment.id] = payment
            return payment

    def list_payments(self, group_id: UUID) -> list[Payment]:
        with self._lock:
            return [p for p in self.payments.values() if p.group == group_id]

    # Overdue governance

    def upsert_overdue_vote(self, vote: OverdueVote) -> OverdueVote:
        with self._lock:
            self.overdue_votes[(vote.group, vote.target, vote.voter)] = vote
            return vote

    def list_overdue_votes(self, group_id: UUID, target_id: Optional[UUID] = None) -> list[OverdueVote]:
        with self._lock:
            return [
                v for (g, t, _), v in self.overdue_votes.items()
                if g == group_id and (target_id is None or t == target_id)
            ]

    def get_member_status(self, group_id: UUID, member_id: UUID) -> MemberState:
        with self._lock:
            record = self.member_statuses.get((group_id, member_id))
        return record.status if record else MemberState.ACTIVE

    def upsert_member_status(self, group_id: UUID, member_id: UUID, status: MemberState) -> MemberStatus:
        record = MemberStatus(group=group_id, member=member_id, status=status, updated_at=utcnow())
        with self._lock:
            self.member_statuses[(group_id, member_id)] = record
        return record

    def list_member_statuses(self, group_id: UUID) -> dict[UUID, MemberState]:
        with self._lock:
            return {m: s.status for (g, m), s in self.member_statuses.items() if g == group_id}
