from typing import Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .errors import (
    AlreadyDecidedError,
    DuplicateVoteError,
    GovernanceRestrictedError,
    NotAMemberError,
    NotAuthorizedError,
    NotFoundError,
    SplitLedgerError,
)
from .logging_config import setup_logging
from .models import (
    AddMemberRequest, Alert, ApprovalVoteRequest, Balance, CreateExpenseRequest,
    CreateGroupRequest, CreatePaymentRequest, DebtEdge, Expense, ExpenseStatus,
    Group, GroupSummary, Member, OverdueStatusView, OverdueVoteRequest, Payment,
    Settlement,
)
from .service import SplitLedgerService

settings = get_settings()
setup_logging(settings.log_level)

app = FastAPI(
    title=settings.api_title,
    description="Shared expense ledger: balances, minimal settlements and group governance",
    version=settings.api_version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ledger_service = SplitLedgerService(settings=settings)


def _http_error(exc: SplitLedgerError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, GovernanceRestrictedError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, NotAuthorizedError) and not isinstance(exc, NotAMemberError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, (DuplicateVoteError, AlreadyDecidedError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(exc))


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "split-ledger"}


@app.post("/groups", response_model=Group, status_code=status.HTTP_201_CREATED, tags=["Groups"])
def create_group(request: CreateGroupRequest) -> Group:
    try:
        return ledger_service.create_group(request)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/members", response_model=Group, tags=["Groups"])
def add_member(group_id: UUID, request: AddMemberRequest) -> Group:
    try:
        return ledger_service.add_member(
            group_id, Member(id=request.member_id, name=request.name, email=request.email)
        )
    except SplitLedgerError as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/expenses", response_model=Expense, status_code=status.HTTP_201_CREATED, tags=["Expenses"])
def create_expense(group_id: UUID, request: CreateExpenseRequest) -> Expense:
    try:
        return ledger_service.add_expense(group_id, request)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/expenses", response_model=list[Expense], tags=["Expenses"])
def list_expenses(group_id: UUID, viewer_id: UUID, status: Optional[ExpenseStatus] = None) -> list[Expense]:
    try:
        return ledger_service.list_expenses(group_id, viewer_id, status)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.post("/expenses/{expense_id}/votes", response_model=Expense, tags=["Expenses"])
def vote_on_expense(expense_id: UUID, request: ApprovalVoteRequest) -> Expense:
    try:
        return ledger_service.cast_approval_vote(expense_id, request)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/payments", response_model=Payment, status_code=status.HTTP_201_CREATED, tags=["Payments"])
def create_payment(group_id: UUID, request: CreatePaymentRequest) -> Payment:
    try:
        return ledger_service.record_payment(group_id, request)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/payments", response_model=list[Payment], tags=["Payments"])
def list_payments(group_id: UUID, viewer_id: UUID) -> list[Payment]:
    try:
        return ledger_service.list_payments(group_id, viewer_id)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/balances", response_model=list[Balance], tags=["Balances"])
def get_balances(group_id: UUID, viewer_id: UUID) -> list[Balance]:
    try:
        return ledger_service.get_balances(group_id, viewer_id)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/debt-graph", response_model=list[DebtEdge], tags=["Balances"])
def get_debt_graph(group_id: UUID, viewer_id: UUID) -> list[DebtEdge]:
    try:
        return ledger_service.get_raw_debt_graph(group_id, viewer_id)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/settlements", response_model=list[Settlement], tags=["Balances"])
def get_settlements(group_id: UUID, viewer_id: UUID) -> list[Settlement]:
    try:
        return ledger_service.get_simplified_settlements(group_id, viewer_id)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/alerts", response_model=list[Alert], tags=["Balances"])
def get_alerts(group_id: UUID, viewer_id: UUID, threshold: Optional[int] = None) -> list[Alert]:
    try:
        return ledger_service.get_threshold_alerts(group_id, threshold, viewer_id)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/summary", response_model=GroupSummary, tags=["Balances"])
def get_summary(group_id: UUID, viewer_id: UUID) -> GroupSummary:
    try:
        return ledger_service.get_group_summary(group_id, viewer_id)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/overdue/{member_id}/votes", response_model=OverdueStatusView, tags=["Governance"])
def vote_overdue(group_id: UUID, member_id: UUID, request: OverdueVoteRequest) -> OverdueStatusView:
    try:
        return ledger_service.cast_overdue_vote(group_id, member_id, request)
    except SplitLedgerError as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/overdue-status", response_model=list[OverdueStatusView], tags=["Governance"])
def get_overdue_status(group_id: UUID, viewer_id: UUID) -> list[OverdueStatusView]:
    try:
        return ledger_service.get_overdue_status(group_id, viewer_id)
    except SplitLedgerError as e:
        raise _http_error(e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
