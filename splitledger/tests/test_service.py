"""
Unit Tests for the ledger service

Tests cover:
1. Group creation and expense creation flows
2. Approval voting through the service
3. Payment validation chain
4. End-to-end balances, settlements and alerts
5. Concurrent payments, writes and reads across groups
"""

import pytest
from concurrent.futures import ThreadPoolExecutor
from threading import Event
from uuid import UUID

from splitledger.errors import (
    AlreadyDecidedError,
    DuplicateVoteError,
    ExpenseNotFoundError,
    GroupNotFoundError,
    InvalidAmountError,
    NotAMemberError,
    NotAuthorizedError,
    OverpaymentError,
    RoleMismatchError,
    SelfReferenceError,
    SplitMismatchError,
)
from splitledger.models import (
    ApprovalChoice,
    ApprovalVoteRequest,
    CreateExpenseRequest,
    CreateGroupRequest,
    CreatePaymentRequest,
    ExpenseStatus,
    Member,
    Recurrence,
    RecurrenceFrequency,
    SplitEntry,
)
from splitledger.service import SplitLedgerService
from splitledger.storage import InMemoryStorage


# Test constants
A = UUID("00000000-0000-0000-0000-00000000000a")
B = UUID("00000000-0000-0000-0000-00000000000b")
C = UUID("00000000-0000-0000-0000-00000000000c")
D = UUID("00000000-0000-0000-0000-00000000000d")
E = UUID("00000000-0000-0000-0000-00000000000e")
OUTSIDER = UUID("00000000-0000-0000-0000-0000000000ff")
MEMBERS = [
    Member(id=A, name="Asha"), Member(id=B, name="Bilal"), Member(id=C, name="Chen"),
    Member(id=D, name="Dara"), Member(id=E, name="Emeka"),
]


def _setup_group(size: int = 3, threshold: int = 0):
    service = SplitLedgerService(InMemoryStorage())
    group = service.create_group(CreateGroupRequest(name="Trip", creator_id=A, settlement_threshold=threshold))
    for member in MEMBERS[:size]:
        service.add_member(group.id, member)
    return service, group.id


def _equal_expense(service, group_id, payer, total, participants, approve=True):
    expense = service.add_expense(group_id, CreateExpenseRequest(
        creator_id=payer, description="Dinner", total_amount=total,
        payer_id=payer, split_members=participants,
    ))
    if approve:
        for voter in service.get_group(group_id).members:
            if expense.status != ExpenseStatus.PENDING:
                break
            expense = service.cast_approval_vote(
                expense.id, ApprovalVoteRequest(voter_id=voter, vote=ApprovalChoice.APPROVE)
            )
    return expense


def _nets(balances):
    return {b.member: b.net for b in balances}


class TestGroupCreation:
    """Tests for group creation."""

    def test_creator_is_first_member(self):
        service, group_id = _setup_group(size=1)
        group = service.get_group(group_id)

        assert group.members == [A]
        assert group.created_by == A

    def test_default_threshold_from_settings(self):
        service = SplitLedgerService(InMemoryStorage())
        group = service.create_group(CreateGroupRequest(name="Flat", creator_id=A))
        assert group.settlement_threshold == service.settings.default_settlement_threshold

    def test_unknown_group(self):
        service = SplitLedgerService(InMemoryStorage())
        with pytest.raises(GroupNotFoundError):
            service.get_balances(OUTSIDER)


class TestExpenseCreation:
    """Tests for adding expenses."""

    def test_new_expense_is_pending(self):
        service, group_id = _setup_group(size=3)
        expense = _equal_expense(service, group_id, A, 100, [A, B, C], approve=False)

        assert expense.status == ExpenseStatus.PENDING
        assert expense.required_approvals == 2
        assert [s.share_amount for s in expense.splits] == [34, 33, 33]

    def test_single_member_group_auto_approves(self):
        service, group_id = _setup_group(size=1)
        expense = _equal_expense(service, group_id, A, 500, [A], approve=False)

        assert expense.status == ExpenseStatus.APPROVED

    def test_custom_split_expense_with_recurrence(self):
        service, group_id = _setup_group(size=3)
        expense = service.add_expense(group_id, CreateExpenseRequest(
            creator_id=B, description="  Rent  ", total_amount=90000, payer_id=B,
            equal_split=False,
            splits=[SplitEntry(member=A, share_amount=40000), SplitEntry(member=B, share_amount=50000)],
            is_recurring=True,
            recurrence=Recurrence(frequency=RecurrenceFrequency.MONTHLY),
        ))

        assert expense.description == "Rent"
        assert expense.recurrence.frequency == RecurrenceFrequency.MONTHLY
        assert expense.recurrence.interval == 1

    def test_custom_split_mismatch(self):
        service, group_id = _setup_group(size=2)
        with pytest.raises(SplitMismatchError):
            service.add_expense(group_id, CreateExpenseRequest(
                creator_id=A, description="Taxi", total_amount=1000, payer_id=A, equal_split=False,
                splits=[SplitEntry(member=A, share_amount=400), SplitEntry(member=B, share_amount=500)],
            ))

    def test_creator_outside_group(self):
        service, group_id = _setup_group(size=2)
        with pytest.raises(NotAuthorizedError):
            _equal_expense(service, group_id, OUTSIDER, 100, [A, B], approve=False)

    def test_payer_outside_group(self):
        service, group_id = _setup_group(size=2)
        with pytest.raises(NotAMemberError):
            service.add_expense(group_id, CreateExpenseRequest(
                creator_id=A, description="Taxi", total_amount=100, payer_id=OUTSIDER, split_members=[A, B],
            ))

    def test_split_member_outside_group(self):
        service, group_id = _setup_group(size=2)
        with pytest.raises(NotAMemberError):
            _equal_expense(service, group_id, A, 100, [A, OUTSIDER], approve=False)

    def test_non_positive_total(self):
        service, group_id = _setup_group(size=2)
        with pytest.raises(InvalidAmountError):
            _equal_expense(service, group_id, A, 0, [A, B], approve=False)

    def test_nothing_recorded_on_failure(self):
        service, group_id = _setup_group(size=2)
        with pytest.raises(InvalidAmountError):
            _equal_expense(service, group_id, A, 100, [A, A], approve=False)

        assert service.list_expenses(group_id, A) == []


class TestApprovalThroughService:
    """Tests for voting on expenses via the service."""

    def test_group_of_five(self):
        service, group_id = _setup_group(size=5)
        expense = _equal_expense(service, group_id, A, 5000, [A, B, C, D, E], approve=False)

        for voter in (A, B):
            expense = service.cast_approval_vote(expense.id, ApprovalVoteRequest(voter_id=voter, vote=ApprovalChoice.APPROVE))
        assert expense.status == ExpenseStatus.PENDING
        assert _nets(service.get_balances(group_id))[A] == 0

        expense = service.cast_approval_vote(expense.id, ApprovalVoteRequest(voter_id=C, vote=ApprovalChoice.APPROVE))
        assert expense.status == ExpenseStatus.APPROVED
        assert _nets(service.get_balances(group_id))[A] == 4000

    def test_rejected_expense_has_no_effect(self):
        service, group_id = _setup_group(size=5)
        expense = _equal_expense(service, group_id, A, 5000, [A, B, C, D, E], approve=False)
        for voter in (B, C, D):
            expense = service.cast_approval_vote(expense.id, ApprovalVoteRequest(voter_id=voter, vote=ApprovalChoice.REJECT))

        assert expense.status == ExpenseStatus.REJECTED
        assert all(b.net == 0 for b in service.get_balances(group_id))

        with pytest.raises(AlreadyDecidedError):
            service.cast_approval_vote(expense.id, ApprovalVoteRequest(voter_id=E, vote=ApprovalChoice.APPROVE))

    def test_duplicate_and_outsider_votes(self):
        service, group_id = _setup_group(size=5)
        expense = _equal_expense(service, group_id, A, 5000, [A, B, C, D, E], approve=False)
        service.cast_approval_vote(expense.id, ApprovalVoteRequest(voter_id=B, vote=ApprovalChoice.APPROVE))

        with pytest.raises(DuplicateVoteError):
            service.cast_approval_vote(expense.id, ApprovalVoteRequest(voter_id=B, vote=ApprovalChoice.REJECT))
        with pytest.raises(NotAMemberError):
            service.cast_approval_vote(expense.id, ApprovalVoteRequest(voter_id=OUTSIDER, vote=ApprovalChoice.APPROVE))

        assert len(service.storage.list_approval_votes(expense.id)) == 1

    def test_unknown_expense(self):
        service, _ = _setup_group(size=2)
        with pytest.raises(ExpenseNotFoundError):
            service.cast_approval_vote(OUTSIDER, ApprovalVoteRequest(voter_id=A, vote=ApprovalChoice.APPROVE))

    def test_pending_listing(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 300, [A, B, C])
        pending = _equal_expense(service, group_id, B, 600, [A, B, C], approve=False)

        assert [e.id for e in service.list_pending_expenses(group_id, C)] == [pending.id]
        assert len(service.list_expenses(group_id, C)) == 2
        with pytest.raises(NotAuthorizedError):
            service.list_expenses(group_id, OUTSIDER)


class TestPayments:
    """Tests for the payment validation chain."""

    def test_partial_payment_scenario(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 30000, [A, B, C])
        assert _nets(service.get_balances(group_id)) == {A: 20000, B: -10000, C: -10000}

        payment = service.record_payment(group_id, CreatePaymentRequest(from_member=B, to_member=A, amount=5000, recorded_by=B))

        assert payment.amount == 5000
        balances = service.get_balances(group_id)
        assert _nets(balances) == {A: 15000, B: -5000, C: -10000}
        assert sum(b.net for b in balances) == 0
        assert service.list_payments(group_id, C) == [payment]

    def test_self_payment(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 30000, [A, B, C])
        with pytest.raises(SelfReferenceError):
            service.record_payment(group_id, CreatePaymentRequest(from_member=B, to_member=B, amount=100, recorded_by=B))

    def test_role_mismatch(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 30000, [A, B, C])

        with pytest.raises(RoleMismatchError):
            service.record_payment(group_id, CreatePaymentRequest(from_member=A, to_member=B, amount=100, recorded_by=A))
        with pytest.raises(RoleMismatchError):
            service.record_payment(group_id, CreatePaymentRequest(from_member=B, to_member=C, amount=100, recorded_by=B))

    def test_overpayment(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 30000, [A, B, C])

        with pytest.raises(OverpaymentError) as exc_info:
            service.record_payment(group_id, CreatePaymentRequest(from_member=B, to_member=A, amount=10001, recorded_by=B))
        assert exc_info.value.max_payable == 10000
        assert service.storage.list_payments(group_id) == []

    def test_invalid_amount_and_parties(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 30000, [A, B, C])

        with pytest.raises(InvalidAmountError):
            service.record_payment(group_id, CreatePaymentRequest(from_member=B, to_member=A, amount=0, recorded_by=B))
        with pytest.raises(NotAMemberError):
            service.record_payment(group_id, CreatePaymentRequest(from_member=OUTSIDER, to_member=A, amount=1, recorded_by=B))
        with pytest.raises(NotAuthorizedError):
            service.record_payment(group_id, CreatePaymentRequest(from_member=B, to_member=A, amount=1, recorded_by=OUTSIDER))

    def test_concurrent_payments_never_overpay(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 30000, [A, B, C])

        def pay():
            try:
                service.record_payment(group_id, CreatePaymentRequest(from_member=B, to_member=A, amount=4000, recorded_by=B))
                return True
            except OverpaymentError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: pay(), range(8)))

        # 10000 owed: two payments of 4000 fit, the third would overpay
        assert results.count(True) == 2
        assert _nets(service.get_balances(group_id))[B] == -2000


class TestDerivedViews:
    """Tests for settlements, alerts and the summary view."""

    def test_settlements_and_raw_graph(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 30000, [A, B, C])

        settlements = service.get_simplified_settlements(group_id)
        assert [(s.from_member, s.to_member, s.amount) for s in settlements] == [(B, A, 10000), (C, A, 10000)]
        assert settlements[0].from_name == "Bilal"

        edges = service.get_raw_debt_graph(group_id)
        assert {(e.from_member, e.to_member, e.amount) for e in edges} == {(B, A, 10000), (C, A, 10000)}

    def test_netting_across_expenses(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 3000, [A, B, C])
        _equal_expense(service, group_id, B, 3000, [A, B, C])

        assert len(service.get_raw_debt_graph(group_id)) == 4
        settlements = service.get_simplified_settlements(group_id)
        assert [(s.from_member, s.amount) for s in settlements] == [(C, 1000), (C, 1000)]

    def test_alerts_use_group_threshold_by_default(self):
        service, group_id = _setup_group(size=3, threshold=10000)
        _equal_expense(service, group_id, A, 30000, [A, B, C])
        service.record_payment(group_id, CreatePaymentRequest(from_member=C, to_member=A, amount=1, recorded_by=C))

        assert [a.member for a in service.get_threshold_alerts(group_id)] == [B]
        assert [a.member for a in service.get_threshold_alerts(group_id, threshold=0)] == [B, C]

    def test_summary(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 30000, [A, B, C])

        summary = service.get_group_summary(group_id, B)
        assert sum(b.net for b in summary.balances) == 0
        assert len(summary.simplified_graph) == 2
        assert len(summary.raw_graph) == 2
        assert [a.amount_owed for a in summary.threshold_alerts] == [10000, 10000]

        with pytest.raises(NotAuthorizedError):
            service.get_group_summary(group_id, OUTSIDER)

    def test_derivation_is_repeatable(self):
        service, group_id = _setup_group(size=3)
        _equal_expense(service, group_id, A, 1000, [A, B, C])
        _equal_expense(service, group_id, C, 777, [A, B])

        assert service.get_balances(group_id) == service.get_balances(group_id)
        assert service.get_simplified_settlements(group_id) == service.get_simplified_settlements(group_id)


class TestConcurrency:
    """Tests for many groups and readers sharing one service."""

    def test_parallel_groups_share_storage(self):
        service = SplitLedgerService(InMemoryStorage())
        group_ids = []
        for i in range(8):
            group = service.create_group(CreateGroupRequest(name=f"Flat {i}", creator_id=A))
            for member in MEMBERS[:3]:
                service.add_member(group.id, member)
            group_ids.append(group.id)

        def churn(group_id):
            for _ in range(25):
                _equal_expense(service, group_id, A, 3000, [A, B, C])
                service.list_expenses(group_id, A)
                service.get_overdue_status(group_id, A)
                service.get_balances(group_id)
            return group_id

        with ThreadPoolExecutor(max_workers=8) as pool:
            finished = list(pool.map(churn, group_ids))

        assert finished == group_ids
        for group_id in group_ids:
            expenses = service.list_expenses(group_id, A)
            assert len(expenses) == 25
            assert all(e.status == ExpenseStatus.APPROVED for e in expenses)
            assert _nets(service.get_balances(group_id)) == {A: 50000, B: -25000, C: -25000}

    def test_reads_during_writes_stay_zero_sum(self):
        service, group_id = _setup_group(size=3)
        done = Event()

        def write():
            try:
                for _ in range(40):
                    _equal_expense(service, group_id, A, 3000, [A, B, C])
                    service.record_payment(
                        group_id, CreatePaymentRequest(from_member=B, to_member=A, amount=1000, recorded_by=B)
                    )
            finally:
                done.set()

        def read():
            sums = []
            while not done.is_set():
                sums.append(sum(b.net for b in service.get_balances(group_id, C)))
                service.get_simplified_settlements(group_id, C)
                service.list_payments(group_id, C)
            return sums

        with ThreadPoolExecutor(max_workers=3) as pool:
            writer = pool.submit(write)
            readers = [pool.submit(read), pool.submit(read)]
            writer.result()
            sums = [s for r in readers for s in r.result()]

        assert set(sums) <= {0}
        nets = _nets(service.get_balances(group_id))
        assert nets == {A: 40000, B: 0, C: -40000}
