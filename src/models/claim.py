"""
Claim Model for Expense Claims.

The reporting engine reads claims; it never writes them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.core.enums import ClaimStatus
from src.models.base import Base, TimeStampedModel, UUIDModel, enum_values


class Claim(Base, UUIDModel, TimeStampedModel):
    """
    Expense claim submitted by an employee.

    Actor references (approved_by, rejected_by, paid_by) stay empty until the
    corresponding lifecycle step occurs. Deleting an account nulls the
    reference instead of removing the claim.
    """

    __tablename__ = "claims"

    # Identification
    claim_id: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Human-readable claim reference",
    )

    # Expense details
    claim_date: Mapped[date] = mapped_column(
        "date",
        Date,
        nullable=False,
        comment="Expense / submission date",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    status: Mapped[ClaimStatus] = mapped_column(
        Enum(ClaimStatus, native_enum=False, values_callable=enum_values, length=30),
        default=ClaimStatus.NEW,
        nullable=False,
        index=True,
    )

    # Actors
    user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Submitter",
    )
    approved_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejected_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    paid_by: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Payment
    payment_reference: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_claims_amount_non_negative"),
        Index("ix_claims_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Claim {self.claim_id} ({self.status.value})>"
