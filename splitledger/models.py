from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalChoice(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class OverdueChoice(str, Enum):
    MARK_OVERDUE = "mark_overdue"
    CLEAR_OVERDUE = "clear_overdue"


class MemberState(str, Enum):
    ACTIVE = "active"
    OVERDUE = "overdue"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# Directory records

class Member(BaseModel):
    id: UUID
    name: str
    email: str = ""

    model_config = ConfigDict(frozen=True)


class Group(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    created_by: UUID
    members: list[UUID] = Field(default_factory=list)
    settlement_threshold: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    def has_member(self, member_id: UUID) -> bool:
        return member_id in self.members

    @property
    def size(self) -> int:
        return len(self.members)


# Facts

class Split(BaseModel):
    member: UUID
    share_amount: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class Recurrence(BaseModel):
    frequency: RecurrenceFrequency
    interval: StrictInt = Field(default=1, ge=1)


class ApprovalVote(BaseModel):
    expense: UUID
    voter: UUID
    vote: ApprovalChoice
    cast_at: datetime = Field(default_factory=utcnow)


class Expense(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    group: UUID
    creator: UUID
    description: str
    total_amount: int = Field(..., ge=1)
    payer: UUID
    splits: list[Split]
    status: ExpenseStatus = ExpenseStatus.PENDING
    approvals: list[ApprovalVote] = Field(default_factory=list)
    required_approvals: int = Field(..., ge=1)
    is_recurring: bool = False
    recurrence: Optional[Recurrence] = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _shares_sum_to_total(self) -> "Expense":
        if not self.splits:
            raise ValueError("At least one split is required")
        split_sum = sum(s.share_amount for s in self.splits)
        if split_sum != self.total_amount:
            raise ValueError(
                f"Sum of shares ({split_sum}) does not equal total amount ({self.total_amount})"
            )
        return self

    def is_pending(self) -> bool:
        return self.status == ExpenseStatus.PENDING

    def has_voted(self, member_id: UUID) -> bool:
        return any(a.voter == member_id for a in self.approvals)

    def count_votes(self, choice: ApprovalChoice) -> int:
        return sum(1 for a in self.approvals if a.vote == choice)


class Payment(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    group: UUID
    from_member: UUID
    to_member: UUID
    amount: int = Field(..., ge=1)
    recorded_by: UUID
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _distinct_parties(self) -> "Payment":
        if self.from_member == self.to_member:
            raise ValueError("Payment sender and receiver must differ")
        return self


class OverdueVote(BaseModel):
    group: UUID
    target: UUID
    voter: UUID
    vote: OverdueChoice
    cast_at: datetime = Field(default_factory=utcnow)


class MemberStatus(BaseModel):
    group: UUID
    member: UUID
    status: MemberState = MemberState.ACTIVE
    updated_at: datetime = Field(default_factory=utcnow)


# Derived values

class Balance(BaseModel):
    member: UUID
    name: str = "Unknown"
    net: int


class DebtEdge(BaseModel):
    from_member: UUID
    to_member: UUID
    from_name: str = "Unknown"
    to_name: str = "Unknown"
    amount: int = Field(..., gt=0)


class Settlement(DebtEdge):
    pass


class Alert(BaseModel):
    member: UUID
    name: str = "Unknown"
    amount_owed: int = Field(..., gt=0)


class OverdueStatusView(MemberStatus):
    name: str = "Unknown"
    mark_overdue_votes: int = 0
    required_votes: int
    votes: list[OverdueVote] = Field(default_factory=list)


class GroupSummary(BaseModel):
    group: UUID
    settlement_threshold: int
    balances: list[Balance]
    raw_graph: list[DebtEdge]
    simplified_graph: list[Settlement]
    threshold_alerts: list[Alert]


# Requests

class CreateGroupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    creator_id: UUID
    settlement_threshold: Optional[StrictInt] = Field(default=None, ge=0)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Goa Trip",
            "creator_id": "550e8400-e29b-41d4-a716-446655440000",
            "settlement_threshold": 50000,
        }
    })


class AddMemberRequest(BaseModel):
    member_id: UUID
    name: str
    email: str = ""


class SplitEntry(BaseModel):
    member: UUID
    share_amount: StrictInt


class CreateExpenseRequest(BaseModel):
    creator_id: UUID
    description: str = Field(..., min_length=1, max_length=200)
    total_amount: StrictInt
    payer_id: UUID
    equal_split: bool = True
    split_members: list[UUID] = Field(default_factory=list)
    splits: list[SplitEntry] = Field(default_factory=list)
    is_recurring: bool = False
    recurrence: Optional[Recurrence] = None

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Description is required")
        return value

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "creator_id": "550e8400-e29b-41d4-a716-446655440000",
            "description": "Dinner",
            "total_amount": 30000,
            "payer_id": "550e8400-e29b-41d4-a716-446655440000",
            "equal_split": True,
            "split_members": [
                "550e8400-e29b-41d4-a716-446655440000",
                "660e8400-e29b-41d4-a716-446655440001",
            ],
        }
    })


class ApprovalVoteRequest(BaseModel):
    voter_id: UUID
    vote: ApprovalChoice


class CreatePaymentRequest(BaseModel):
    from_member: UUID
    to_member: UUID
    amount: StrictInt
    recorded_by: UUID


class OverdueVoteRequest(BaseModel):
    voter_id: UUID
    vote: OverdueChoice
