"""
Read ports over the claims ledger, the account directory and the audit trail.

The reporting engine only talks to these interfaces. Two families of
adapters implement them: SQLAlchemy-backed readers for live mode and
in-memory readers for demo mode and tests.

Aggregations are described declaratively with `AggregationSpec`:

    AggregationSpec(
        match=ClaimFilter(created_from=start, created_before=end),
        group_key=GroupKey.STATUS,
        accumulators={"count": Count(), "amount": Sum("amount")},
        sort=(SortKey("count"),),
    )

An ungrouped spec always yields exactly one bucket (key None), with zero
values when nothing matches.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID

from src.core.enums import AccountStatus, ClaimStatus, UserRole


class ReaderError(Exception):
    """Raised by a reader when the underlying store cannot answer a query."""

    pass


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class ActorRef:
    """Display fields of an account referenced by a claim."""

    id: UUID
    name: str
    department: Optional[str] = None
    employee_id: Optional[str] = None


@dataclass(frozen=True)
class AccountRecord:
    id: UUID
    name: str
    role: UserRole
    status: AccountStatus = AccountStatus.ACTIVE
    email: Optional[str] = None
    department: Optional[str] = None
    employee_id: Optional[str] = None

    def as_actor(self) -> ActorRef:
        return ActorRef(
            id=self.id,
            name=self.name,
            department=self.department,
            employee_id=self.employee_id,
        )


@dataclass(frozen=True)
class ClaimRecord:
    """
    A claim as seen by the reporting engine.

    Actor references (submitter, approver, rejecter, payer) are only filled
    when requested through `ClaimJoin` and the account still exists.
    """

    id: UUID
    claim_id: str
    claim_date: date
    amount: Decimal
    currency: str
    category: str
    description: str
    status: ClaimStatus
    created_at: datetime
    user_id: Optional[UUID] = None
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    paid_by: Optional[UUID] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    submitter: Optional[ActorRef] = None
    approver: Optional[ActorRef] = None
    rejecter: Optional[ActorRef] = None
    payer: Optional[ActorRef] = None


class ClaimJoin(str, Enum):
    """Account references a claim query can resolve."""

    SUBMITTER = "submitter"
    APPROVER = "approver"
    REJECTER = "rejecter"
    PAYER = "payer"


# Claim attribute holding the account id for each join.
JOIN_REFERENCE_FIELDS: dict[ClaimJoin, str] = {
    ClaimJoin.SUBMITTER: "user_id",
    ClaimJoin.APPROVER: "approved_by",
    ClaimJoin.REJECTER: "rejected_by",
    ClaimJoin.PAYER: "paid_by",
}

ALL_JOINS: frozenset[ClaimJoin] = frozenset(ClaimJoin)


# =============================================================================
# Filters
# =============================================================================


@dataclass(frozen=True)
class ClaimFilter:
    """Claim match filter. `created_from` is inclusive, `created_before` exclusive."""

    created_from: Optional[datetime] = None
    created_before: Optional[datetime] = None


@dataclass(frozen=True)
class AccountFilter:
    status: Optional[AccountStatus] = None
    role: Optional[UserRole] = None
    department: Optional[str] = None


CLAIM_SORT_FIELDS = frozenset({"created_at", "claim_date", "amount"})
ACCOUNT_GROUP_FIELDS = frozenset({"role", "department", "status"})
ACTIVITY_FIELDS = (
    "id",
    "action",
    "user_id",
    "user_name",
    "user_role",
    "entity_type",
    "entity_id",
    "details",
    "timestamp",
    "ip_address",
    "user_agent",
)


# =============================================================================
# Aggregation Spec
# =============================================================================

# Claim fields predicates and sums may reference.
PREDICATE_FIELDS = frozenset({"status", "category", "created_at", "amount"})
SUM_FIELDS = frozenset({"amount"})


@dataclass(frozen=True)
class FieldIn:
    """True when the claim field's value is a member of `values`."""

    field: str
    values: frozenset


@dataclass(frozen=True)
class FieldAtLeast:
    """True when the claim field's value is >= `value`."""

    field: str
    value: Any


Predicate = Union[FieldIn, FieldAtLeast]


@dataclass(frozen=True)
class Count:
    pass


@dataclass(frozen=True)
class Sum:
    field: str = "amount"


@dataclass(frozen=True)
class ConditionalSum:
    """Adds `field` for records matching `predicate`, zero otherwise."""

    predicate: Predicate
    field: str = "amount"


Accumulator = Union[Count, Sum, ConditionalSum]


class GroupKey(str, Enum):
    """Bucketing dimensions for claim aggregations."""

    STATUS = "status"
    CATEGORY = "category"
    SUBMITTER = "submitter"
    # Inner join on the submitter account: unresolved submitters drop out.
    SUBMITTER_DEPARTMENT = "submitter_department"
    CREATED_MONTH = "created_month"
    CREATED_DAY = "created_day"


@dataclass(frozen=True)
class SortKey:
    """Sort on an accumulator name, or on the bucket key with `"key"`."""

    field: str
    descending: bool = True


@dataclass(frozen=True)
class AggregationSpec:
    accumulators: Mapping[str, Accumulator]
    match: ClaimFilter = field(default_factory=ClaimFilter)
    group_key: Optional[GroupKey] = None
    sort: tuple[SortKey, ...] = ()
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.accumulators:
            raise ValueError("AggregationSpec needs at least one accumulator")
        for name, accumulator in self.accumulators.items():
            if name == "key":
                raise ValueError("'key' is reserved for the bucket key")
            _check_accumulator(accumulator)
        for sort_key in self.sort:
            if sort_key.field != "key" and sort_key.field not in self.accumulators:
                raise ValueError(f"Unknown sort field: {sort_key.field}")
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit must be non-negative")


def _check_accumulator(accumulator: Accumulator) -> None:
    if isinstance(accumulator, Count):
        return
    if isinstance(accumulator, Sum):
        if accumulator.field not in SUM_FIELDS:
            raise ValueError(f"Cannot sum field: {accumulator.field}")
        return
    if isinstance(accumulator, ConditionalSum):
        if accumulator.field not in SUM_FIELDS:
            raise ValueError(f"Cannot sum field: {accumulator.field}")
        if accumulator.predicate.field not in PREDICATE_FIELDS:
            raise ValueError(f"Unsupported predicate field: {accumulator.predicate.field}")
        return
    raise TypeError(f"Unsupported accumulator: {accumulator!r}")


@dataclass(frozen=True)
class Bucket:
    """One group of an aggregation result."""

    key: Any
    values: Mapping[str, Any]


# =============================================================================
# Ports
# =============================================================================


class LedgerReader(ABC):
    """Read-only access to the claims ledger."""

    @abstractmethod
    async def count(self, claim_filter: Optional[ClaimFilter] = None) -> int:
        """Count claims matching the filter."""
        pass

    @abstractmethod
    async def find(
        self,
        claim_filter: Optional[ClaimFilter] = None,
        *,
        join: Iterable[ClaimJoin] = (),
        order_by: str = "created_at",
        descending: bool = False,
    ) -> list[ClaimRecord]:
        """Find claims, resolving the requested account references."""
        pass

    @abstractmethod
    async def aggregate(self, spec: AggregationSpec) -> list[Bucket]:
        """Run a grouped aggregation."""
        pass


class DirectoryReader(ABC):
    """Read-only access to user accounts."""

    @abstractmethod
    async def count(self, account_filter: Optional[AccountFilter] = None) -> int:
        pass

    @abstractmethod
    async def count_by(
        self,
        field: str,
        account_filter: Optional[AccountFilter] = None,
    ) -> list[tuple[Optional[str], int]]:
        """Count accounts grouped by `role`, `department` or `status`."""
        pass

    @abstractmethod
    async def find_by_ids(self, ids: Sequence[UUID]) -> list[AccountRecord]:
        pass


class ActivityReader(ABC):
    """Read-only access to the audit trail."""

    @abstractmethod
    async def find_recent(
        self,
        limit: int,
        fields: Sequence[str] = ACTIVITY_FIELDS,
    ) -> list[dict[str, Any]]:
        """Most recent entries first, projected onto `fields`."""
        pass


@dataclass(frozen=True)
class ActorContext:
    """Who is asking for a report, and from where."""

    user_id: Optional[UUID]
    name: str = "System"
    role: str = "system"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class ActivitySink(ABC):
    """Write side of the audit trail used for report access logging."""

    @abstractmethod
    async def record(
        self,
        actor: Optional[ActorContext],
        action: str,
        entity_type: str,
        entity_id: Optional[str],
        details: Optional[str] = None,
    ) -> None:
        pass


def check_claim_sort_field(order_by: str) -> None:
    if order_by not in CLAIM_SORT_FIELDS:
        raise ValueError(f"Unsupported claim sort field: {order_by}")


def check_account_group_field(field_name: str) -> None:
    if field_name not in ACCOUNT_GROUP_FIELDS:
        raise ValueError(f"Unsupported account group field: {field_name}")


def check_activity_fields(fields: Sequence[str]) -> None:
    unknown = [name for name in fields if name not in ACTIVITY_FIELDS]
    if unknown:
        raise ValueError(f"Unsupported activity fields: {', '.join(unknown)}")


def enum_value(value: Any) -> Any:
    """Plain value for enum members, identity otherwise."""
    return value.value if isinstance(value, Enum) else value
