"""
Pydantic Schemas for Report Payloads.

Field names are snake_case in Python and camelCase on the wire.
Every numeric field defaults to zero so an empty store yields zeros,
never nulls.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.services.readers.base import ActorRef, ClaimRecord


class ReportModel(BaseModel):
    """Base for report schemas: camelCase aliases, population by field name."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Shared Pieces
# =============================================================================


class TrendPointSchema(ReportModel):
    bucket: int
    label: str
    count: int = 0
    amount: float = 0.0


class CategoryTotalSchema(ReportModel):
    category: Optional[str] = None
    count: int = 0
    amount: float = 0.0


class AccountSummary(ReportModel):
    """Display fields of an account."""

    id: Optional[UUID] = None
    name: str = ""
    department: Optional[str] = None
    employee_id: Optional[str] = None


class ActivityEntry(ReportModel):
    action: str
    user_name: Optional[str] = None
    user_role: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Optional[str] = None
    timestamp: datetime


# =============================================================================
# Summary Report
# =============================================================================


class UserTotals(ReportModel):
    total: int = 0
    by_role: dict[str, int] = Field(default_factory=dict)


class ClaimTotals(ReportModel):
    total: int = 0
    monthly: int = 0
    yearly: int = 0


class FinancialTotals(ReportModel):
    total_amount: float = 0.0
    monthly_amount: float = 0.0
    yearly_amount: float = 0.0


class SummaryReport(ReportModel):
    users: UserTotals = Field(default_factory=UserTotals)
    claims: ClaimTotals = Field(default_factory=ClaimTotals)
    financial: FinancialTotals = Field(default_factory=FinancialTotals)
    claims_by_status: list[CategoryTotalSchema] = Field(default_factory=list)
    claims_by_department: list[CategoryTotalSchema] = Field(default_factory=list)
    monthly_trend: list[TrendPointSchema] = Field(default_factory=list)
    recent_activity: list[ActivityEntry] = Field(default_factory=list)


# =============================================================================
# Monthly Report
# =============================================================================


class ReportPeriod(ReportModel):
    year: int
    month: int
    month_name: str
    start_date: datetime
    end_date: datetime


class MonthlyTotals(ReportModel):
    total_claims: int = 0
    total_amount: float = 0.0
    approved_amount: float = 0.0
    paid_amount: float = 0.0
    pending_amount: float = 0.0


class ContributorTotal(ReportModel):
    user: AccountSummary
    count: int = 0
    amount: float = 0.0


class ClaimItem(ReportModel):
    """A claim with its account references resolved to display fields."""

    id: UUID
    claim_id: str
    claim_date: date = Field(alias="date")
    amount: float
    currency: str
    category: str
    description: str
    status: str
    submitter: Optional[AccountSummary] = None
    approved_by: Optional[AccountSummary] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[AccountSummary] = None
    rejected_at: Optional[datetime] = None
    paid_by: Optional[AccountSummary] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: ClaimRecord) -> "ClaimItem":
        return cls(
            id=record.id,
            claim_id=record.claim_id,
            claim_date=record.claim_date,
            amount=float(record.amount),
            currency=record.currency,
            category=record.category,
            description=record.description,
            status=record.status.value,
            submitter=_summary(record.submitter),
            approved_by=_summary(record.approver),
            approved_at=record.approved_at,
            rejected_by=_summary(record.rejecter),
            rejected_at=record.rejected_at,
            paid_by=_summary(record.payer),
            paid_at=record.paid_at,
            payment_reference=record.payment_reference,
            notes=record.notes,
            created_at=record.created_at,
        )


def _summary(actor: Optional[ActorRef]) -> Optional[AccountSummary]:
    if actor is None:
        return None
    return AccountSummary.model_validate(actor)


class MonthlyReport(ReportModel):
    period: ReportPeriod
    summary: MonthlyTotals = Field(default_factory=MonthlyTotals)
    claims: list[ClaimItem] = Field(default_factory=list)
    claims_by_user: list[ContributorTotal] = Field(default_factory=list)
    daily_trend: list[TrendPointSchema] = Field(default_factory=list)


# =============================================================================
# Response Envelopes
# =============================================================================


class SummaryReportResponse(ReportModel):
    success: bool = True
    data: SummaryReport


class MonthlyReportResponse(ReportModel):
    success: bool = True
    data: MonthlyReport


class ClaimExportResponse(ReportModel):
    success: bool = True
    data: list[ClaimItem] = Field(default_factory=list)


class ErrorResponse(ReportModel):
    success: bool = False
    message: str
    details: Optional[Any] = None
