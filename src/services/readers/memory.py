"""
In-memory readers for demo mode and tests.

They evaluate the same `AggregationSpec` contract as the SQL readers over
plain Python collections: the same filters, the same inner join for
department grouping, the same ordering rules (sort keys, then bucket key
ascending).
"""

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from src.services.readers.base import (
    ACTIVITY_FIELDS,
    JOIN_REFERENCE_FIELDS,
    AccountFilter,
    AccountRecord,
    Accumulator,
    ActivityReader,
    ActivitySink,
    ActorContext,
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
    check_account_group_field,
    check_activity_fields,
    check_claim_sort_field,
    enum_value,
)
from src.utils.dates import as_utc, utc_now

_MISSING = object()


def _sort_value(value: Any) -> tuple:
    """Orderable wrapper: None sorts before everything, UUIDs by their string form."""
    if value is None:
        return (0, "")
    if isinstance(value, UUID):
        return (1, str(value))
    if isinstance(value, datetime):
        return (1, as_utc(value))
    return (1, enum_value(value))


def _matches_filter(claim: ClaimRecord, claim_filter: Optional[ClaimFilter]) -> bool:
    if claim_filter is None:
        return True
    created_at = as_utc(claim.created_at)
    if claim_filter.created_from is not None and created_at < as_utc(claim_filter.created_from):
        return False
    if claim_filter.created_before is not None and created_at >= as_utc(claim_filter.created_before):
        return False
    return True


def _evaluate(predicate: Predicate, claim: ClaimRecord) -> bool:
    value = getattr(claim, predicate.field)
    if isinstance(predicate, FieldIn):
        return enum_value(value) in {enum_value(v) for v in predicate.values}
    if isinstance(predicate, FieldAtLeast):
        if isinstance(value, datetime):
            return as_utc(value) >= as_utc(predicate.value)
        return value >= predicate.value
    raise TypeError(f"Unsupported predicate: {predicate!r}")


def _accumulate(accumulator: Accumulator, claims: Sequence[ClaimRecord]) -> Any:
    if isinstance(accumulator, Count):
        return len(claims)
    if isinstance(accumulator, ConditionalSum):
        return sum(
            (Decimal(getattr(c, accumulator.field)) for c in claims if _evaluate(accumulator.predicate, c)),
            Decimal("0"),
        )
    return sum((Decimal(getattr(c, accumulator.field)) for c in claims), Decimal("0"))


class InMemoryDirectory(DirectoryReader):
    """Account directory held in a dict keyed by id."""

    def __init__(self, accounts: Iterable[AccountRecord] = ()):
        self._accounts: dict[UUID, AccountRecord] = {a.id: a for a in accounts}

    def add(self, account: AccountRecord) -> None:
        self._accounts[account.id] = account

    def remove(self, account_id: UUID) -> None:
        self._accounts.pop(account_id, None)

    def get(self, account_id: Optional[UUID]) -> Optional[AccountRecord]:
        if account_id is None:
            return None
        return self._accounts.get(account_id)

    def _matching(self, account_filter: Optional[AccountFilter]) -> list[AccountRecord]:
        accounts = list(self._accounts.values())
        if account_filter is None:
            return accounts
        if account_filter.status is not None:
            accounts = [a for a in accounts if a.status == account_filter.status]
        if account_filter.role is not None:
            accounts = [a for a in accounts if a.role == account_filter.role]
        if account_filter.department is not None:
            accounts = [a for a in accounts if a.department == account_filter.department]
        return accounts

    async def count(self, account_filter: Optional[AccountFilter] = None) -> int:
        return len(self._matching(account_filter))

    async def count_by(
        self,
        field: str,
        account_filter: Optional[AccountFilter] = None,
    ) -> list[tuple[Optional[str], int]]:
        check_account_group_field(field)
        counts: dict[Optional[str], int] = {}
        for account in self._matching(account_filter):
            key = enum_value(getattr(account, field))
            counts[key] = counts.get(key, 0) + 1
        return sorted(counts.items(), key=lambda item: _sort_value(item[0]))

    async def find_by_ids(self, ids: Sequence[UUID]) -> list[AccountRecord]:
        found = [self._accounts[i] for i in set(ids) if i in self._accounts]
        return sorted(found, key=lambda a: str(a.id))


class InMemoryLedger(LedgerReader):
    """Claims ledger held in a list; joins resolve against an `InMemoryDirectory`."""

    def __init__(self, claims: Iterable[ClaimRecord] = (), directory: Optional[InMemoryDirectory] = None):
        self._claims: list[ClaimRecord] = list(claims)
        self._directory = directory or InMemoryDirectory()

    def add(self, claim: ClaimRecord) -> None:
        self._claims.append(claim)

    def _matching(self, claim_filter: Optional[ClaimFilter]) -> list[ClaimRecord]:
        return [c for c in self._claims if _matches_filter(c, claim_filter)]

    def _resolve(self, claim: ClaimRecord, joins: frozenset[ClaimJoin]) -> ClaimRecord:
        actors = {}
        for claim_join in joins:
            account = self._directory.get(getattr(claim, JOIN_REFERENCE_FIELDS[claim_join]))
            actors[claim_join.value] = account.as_actor() if account else None
        return replace(claim, **actors)

    def _group_key(self, group_key: GroupKey, claim: ClaimRecord) -> Any:
        if group_key is GroupKey.STATUS:
            return enum_value(claim.status)
        if group_key is GroupKey.CATEGORY:
            return claim.category
        if group_key is GroupKey.SUBMITTER:
            return claim.user_id
        if group_key is GroupKey.SUBMITTER_DEPARTMENT:
            account = self._directory.get(claim.user_id)
            return account.department if account else _MISSING
        if group_key is GroupKey.CREATED_MONTH:
            return as_utc(claim.created_at).month
        if group_key is GroupKey.CREATED_DAY:
            return as_utc(claim.created_at).day
        raise ValueError(f"Unsupported group key: {group_key}")

    async def count(self, claim_filter: Optional[ClaimFilter] = None) -> int:
        return len(self._matching(claim_filter))

    async def find(
        self,
        claim_filter: Optional[ClaimFilter] = None,
        *,
        join: Iterable[ClaimJoin] = (),
        order_by: str = "created_at",
        descending: bool = False,
    ) -> list[ClaimRecord]:
        check_claim_sort_field(order_by)
        joins = frozenset(join)
        claims = sorted(self._matching(claim_filter), key=lambda c: str(c.id))
        claims.sort(key=lambda c: _sort_value(getattr(c, order_by)), reverse=descending)
        return [self._resolve(c, joins) for c in claims]

    async def aggregate(self, spec: AggregationSpec) -> list[Bucket]:
        claims = self._matching(spec.match)

        if spec.group_key is None:
            return [
                Bucket(
                    key=None,
                    values={name: _accumulate(acc, claims) for name, acc in spec.accumulators.items()},
                )
            ]

        groups: dict[Any, list[ClaimRecord]] = {}
        for claim in claims:
            key = self._group_key(spec.group_key, claim)
            if key is _MISSING:
                continue
            groups.setdefault(key, []).append(claim)

        buckets = [
            Bucket(
                key=key,
                values={name: _accumulate(acc, members) for name, acc in spec.accumulators.items()},
            )
            for key, members in groups.items()
        ]

        # Stable sorts: bucket key first, then the declared sort keys in reverse.
        buckets.sort(key=lambda b: _sort_value(b.key))
        for sort_key in reversed(spec.sort):
            if sort_key.field == "key":
                buckets.sort(key=lambda b: _sort_value(b.key), reverse=sort_key.descending)
            else:
                buckets.sort(key=lambda b, f=sort_key.field: b.values[f], reverse=sort_key.descending)

        if spec.limit is not None:
            buckets = buckets[: spec.limit]
        return buckets


class InMemoryActivityLog(ActivityReader, ActivitySink):
    """Audit trail kept in a list; serves as both reader and sink."""

    def __init__(self, entries: Iterable[dict[str, Any]] = ()):
        self._entries: list[dict[str, Any]] = []
        for entry in entries:
            self._append(entry)

    def _append(self, entry: dict[str, Any]) -> None:
        row = {name: None for name in ACTIVITY_FIELDS}
        row.update(entry)
        if row["id"] is None:
            row["id"] = len(self._entries) + 1
        if row["timestamp"] is None:
            row["timestamp"] = utc_now()
        self._entries.append(row)

    @property
    def entries(self) -> list[dict[str, Any]]:
        return list(self._entries)

    async def find_recent(
        self,
        limit: int,
        fields: Sequence[str] = ACTIVITY_FIELDS,
    ) -> list[dict[str, Any]]:
        check_activity_fields(fields)
        ordered = sorted(
            self._entries,
            key=lambda e: (as_utc(e["timestamp"]), e["id"]),
            reverse=True,
        )
        return [{name: entry[name] for name in fields} for entry in ordered[:limit]]

    async def record(
        self,
        actor: Optional[ActorContext],
        action: str,
        entity_type: str,
        entity_id: Optional[str],
        details: Optional[str] = None,
    ) -> None:
        actor = actor or ActorContext(user_id=None)
        self._append(
            {
                "action": action,
                "user_id": actor.user_id,
                "user_name": actor.name,
                "user_role": actor.role,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "details": details,
                "ip_address": actor.ip_address,
                "user_agent": actor.user_agent,
            }
        )
