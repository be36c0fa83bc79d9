"""
SQLAlchemy-backed readers.

Each call opens its own session from the shared session factory so that a
report can run several reader calls concurrently (an AsyncSession must not
be shared between concurrent tasks).

Source: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import DateTime, Select, case, extract, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import FunctionElement
from sqlalchemy.orm import aliased

from src.models.audit import AuditLog
from src.models.claim import Claim
from src.models.user import User
from src.services.readers.base import (
    ACTIVITY_FIELDS,
    JOIN_REFERENCE_FIELDS,
    AccountFilter,
    AccountRecord,
    Accumulator,
    ActivityReader,
    ActivitySink,
    ActorContext,
    ActorRef,
    AggregationSpec,
    Bucket,
    ClaimFilter,
    ClaimJoin,
    ClaimRecord,
    ConditionalSum,
    Count,
    DirectoryReader,
    FieldAtLeast,
    FieldIn,
    GroupKey,
    LedgerReader,
    Predicate,
    ReaderError,
    check_account_group_field,
    check_activity_fields,
    check_claim_sort_field,
    enum_value,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Expression builders
# =============================================================================


class utc_timestamp(FunctionElement):
    """
    A timestamp column read as UTC wall-clock time.

    PostgreSQL evaluates EXTRACT on timestamptz in the session time zone, so
    the value is shifted to UTC first. Other backends store naive UTC and
    render the column unchanged.
    """

    type = DateTime()
    name = "utc_timestamp"
    inherit_cache = True


@compiles(utc_timestamp)
def _compile_utc_timestamp(element, compiler, **kw):  # type: ignore[no-untyped-def]
    return compiler.process(element.clauses, **kw)


@compiles(utc_timestamp, "postgresql")
def _compile_utc_timestamp_postgresql(element, compiler, **kw):  # type: ignore[no-untyped-def]
    return f"timezone('UTC', {compiler.process(element.clauses, **kw)})"


def _ordered(column, descending: bool):  # type: ignore[no-untyped-def]
    """NULL keys sort first ascending and last descending on every backend."""
    if descending:
        return column.desc().nulls_last()
    return column.asc().nulls_first()


def _apply_claim_filter(query: Select, claim_filter: Optional[ClaimFilter]) -> Select:
    if claim_filter is None:
        return query
    if claim_filter.created_from is not None:
        query = query.where(Claim.created_at >= claim_filter.created_from)
    if claim_filter.created_before is not None:
        query = query.where(Claim.created_at < claim_filter.created_before)
    return query


def _apply_account_filter(query: Select, account_filter: Optional[AccountFilter]) -> Select:
    if account_filter is None:
        return query
    if account_filter.status is not None:
        query = query.where(User.status == account_filter.status)
    if account_filter.role is not None:
        query = query.where(User.role == account_filter.role)
    if account_filter.department is not None:
        query = query.where(User.department == account_filter.department)
    return query


def _predicate_expression(predicate: Predicate):  # type: ignore[no-untyped-def]
    column = getattr(Claim, predicate.field)
    if isinstance(predicate, FieldIn):
        return column.in_(sorted(predicate.values, key=str))
    if isinstance(predicate, FieldAtLeast):
        return column >= predicate.value
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def _accumulator_expression(accumulator: Accumulator):  # type: ignore[no-untyped-def]
    if isinstance(accumulator, Count):
        return func.count(Claim.id)
    if isinstance(accumulator, ConditionalSum):
        column = getattr(Claim, accumulator.field)
        conditional = case((_predicate_expression(accumulator.predicate), column), else_=0)
        return func.coalesce(func.sum(conditional), 0)
    column = getattr(Claim, accumulator.field)
    return func.coalesce(func.sum(column), 0)


def _group_expression(group_key: GroupKey):  # type: ignore[no-untyped-def]
    if group_key is GroupKey.STATUS:
        return Claim.status
    if group_key is GroupKey.CATEGORY:
        return Claim.category
    if group_key is GroupKey.SUBMITTER:
        return Claim.user_id
    if group_key is GroupKey.SUBMITTER_DEPARTMENT:
        return User.department
    if group_key is GroupKey.CREATED_MONTH:
        return extract("month", utc_timestamp(Claim.created_at))
    if group_key is GroupKey.CREATED_DAY:
        return extract("day", utc_timestamp(Claim.created_at))
    raise ValueError(f"Unsupported group key: {group_key}")


def _normalize_key(group_key: Optional[GroupKey], key: Any) -> Any:
    if key is None:
        return None
    if group_key in (GroupKey.CREATED_MONTH, GroupKey.CREATED_DAY):
        return int(key)
    return enum_value(key)


def _normalize_value(value: Any) -> Any:
    if value is None:
        return 0
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _to_actor(account: Optional[User]) -> Optional[ActorRef]:
    if account is None:
        return None
    return ActorRef(
        id=account.id,
        name=account.name,
        department=account.department,
        employee_id=account.employee_id,
    )


def _to_account(user: User) -> AccountRecord:
    return AccountRecord(
        id=user.id,
        name=user.name,
        role=user.role,
        status=user.status,
        email=user.email,
        department=user.department,
        employee_id=user.employee_id,
    )


def _to_claim(claim: Claim, actors: dict[ClaimJoin, Optional[ActorRef]]) -> ClaimRecord:
    return ClaimRecord(
        id=claim.id,
        claim_id=claim.claim_id,
        claim_date=claim.claim_date,
        amount=claim.amount,
        currency=claim.currency,
        category=claim.category,
        description=claim.description,
        status=claim.status,
        created_at=claim.created_at,
        user_id=claim.user_id,
        approved_by=claim.approved_by,
        approved_at=claim.approved_at,
        rejected_by=claim.rejected_by,
        rejected_at=claim.rejected_at,
        paid_by=claim.paid_by,
        paid_at=claim.paid_at,
        payment_reference=claim.payment_reference,
        notes=claim.notes,
        submitter=actors.get(ClaimJoin.SUBMITTER),
        approver=actors.get(ClaimJoin.APPROVER),
        rejecter=actors.get(ClaimJoin.REJECTER),
        payer=actors.get(ClaimJoin.PAYER),
    )


def build_aggregate_query(spec: AggregationSpec) -> Select:
    """
    One grouped SELECT for an aggregation spec.

    Columns are the bucket key (when grouped) followed by the accumulators in
    declaration order.
    """
    labelled = {
        name: _accumulator_expression(accumulator).label(name)
        for name, accumulator in spec.accumulators.items()
    }

    group_column = None
    columns = list(labelled.values())
    if spec.group_key is not None:
        group_column = _group_expression(spec.group_key)
        columns.insert(0, group_column.label("bucket_key"))

    query = select(*columns).select_from(Claim)
    if spec.group_key is GroupKey.SUBMITTER_DEPARTMENT:
        query = query.join(User, Claim.user_id == User.id)
    query = _apply_claim_filter(query, spec.match)

    if group_column is not None:
        query = query.group_by(group_column)
        ordering = []
        for sort_key in spec.sort:
            column = group_column if sort_key.field == "key" else labelled[sort_key.field]
            ordering.append(_ordered(column, sort_key.descending))
        ordering.append(_ordered(group_column, False))
        query = query.order_by(*ordering)
        if spec.limit is not None:
            query = query.limit(spec.limit)
    return query


# =============================================================================
# Readers
# =============================================================================


class _SqlReader:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def _execute(self, query: Select):  # type: ignore[no-untyped-def]
        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                return result.all()
        except SQLAlchemyError as e:
            logger.error(f"{type(self).__name__} query failed: {e}")
            raise ReaderError(str(e)) from e


class SqlLedgerReader(_SqlReader, LedgerReader):
    """Claims ledger over the `claims` table."""

    async def count(self, claim_filter: Optional[ClaimFilter] = None) -> int:
        query = _apply_claim_filter(select(func.count(Claim.id)), claim_filter)
        rows = await self._execute(query)
        return int(rows[0][0])

    async def find(
        self,
        claim_filter: Optional[ClaimFilter] = None,
        *,
        join: Iterable[ClaimJoin] = (),
        order_by: str = "created_at",
        descending: bool = False,
    ) -> list[ClaimRecord]:
        check_claim_sort_field(order_by)
        joins = sorted(set(join), key=lambda j: j.value)
        accounts = {j: aliased(User, name=f"{j.value}_account") for j in joins}

        query = select(Claim, *accounts.values())
        for claim_join, account in accounts.items():
            reference = getattr(Claim, JOIN_REFERENCE_FIELDS[claim_join])
            query = query.outerjoin(account, reference == account.id)
        query = _apply_claim_filter(query, claim_filter)

        sort_column = getattr(Claim, order_by)
        query = query.order_by(_ordered(sort_column, descending), Claim.id.asc())

        rows = await self._execute(query)
        records = []
        for row in rows:
            actors = {j: _to_actor(row[index + 1]) for index, j in enumerate(joins)}
            records.append(_to_claim(row[0], actors))
        return records

    async def aggregate(self, spec: AggregationSpec) -> list[Bucket]:
        rows = await self._execute(build_aggregate_query(spec))
        names = list(spec.accumulators)
        offset = 1 if spec.group_key is not None else 0
        return [
            Bucket(
                key=_normalize_key(spec.group_key, row[0]) if spec.group_key is not None else None,
                values={
                    name: _normalize_value(row[offset + index])
                    for index, name in enumerate(names)
                },
            )
            for row in rows
        ]


class SqlDirectoryReader(_SqlReader, DirectoryReader):
    """Account directory over the `users` table."""

    async def count(self, account_filter: Optional[AccountFilter] = None) -> int:
        query = _apply_account_filter(select(func.count(User.id)), account_filter)
        rows = await self._execute(query)
        return int(rows[0][0])

    async def count_by(
        self,
        field: str,
        account_filter: Optional[AccountFilter] = None,
    ) -> list[tuple[Optional[str], int]]:
        check_account_group_field(field)
        column = getattr(User, field)
        query = select(column, func.count(User.id)).group_by(column).order_by(column.asc())
        rows = await self._execute(_apply_account_filter(query, account_filter))
        return [(enum_value(key), int(count)) for key, count in rows]

    async def find_by_ids(self, ids: Sequence[UUID]) -> list[AccountRecord]:
        if not ids:
            return []
        query = select(User).where(User.id.in_(list(ids))).order_by(User.id.asc())
        rows = await self._execute(query)
        return [_to_account(row[0]) for row in rows]


class SqlActivityReader(_SqlReader, ActivityReader):
    """Audit trail over the `audit_logs` table."""

    async def find_recent(
        self,
        limit: int,
        fields: Sequence[str] = ACTIVITY_FIELDS,
    ) -> list[dict[str, Any]]:
        check_activity_fields(fields)
        query = (
            select(*(getattr(AuditLog, name) for name in fields))
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(limit)
        )
        rows = await self._execute(query)
        return [dict(zip(fields, row)) for row in rows]


class SqlActivitySink(ActivitySink):
    """Appends audit entries in a short-lived session of their own."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def record(
        self,
        actor: Optional[ActorContext],
        action: str,
        entity_type: str,
        entity_id: Optional[str],
        details: Optional[str] = None,
    ) -> None:
        actor = actor or ActorContext(user_id=None)
        async with self._session_maker() as session:
            session.add(
                AuditLog(
                    action=action,
                    user_id=actor.user_id,
                    user_name=actor.name,
                    user_role=actor.role,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    details=details,
                    ip_address=actor.ip_address,
                    user_agent=actor.user_agent,
                )
            )
            await session.commit()
