"""
Aggregation Engine.

Turns reader aggregations into report-ready figures:

- windowed rollups (lifetime, month-to-date, year-to-date) in one pass
- conditional rollups driven by a {bucket name -> status set} table
- categorical breakdowns (status, category, department, submitter)
- dense trend series (12 months of a year, every day of a month)

The engine holds no state between calls and knows no domain status lists;
callers pass the bucket tables in. Reader errors propagate unchanged.
"""

import asyncio
import calendar
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from src.core.enums import AccountStatus, ClaimStatus
from src.services.readers.base import (
    AccountFilter,
    AggregationSpec,
    Bucket,
    ClaimFilter,
    ConditionalSum,
    Count,
    DirectoryReader,
    FieldAtLeast,
    FieldIn,
    GroupKey,
    LedgerReader,
    SortKey,
    Sum,
)
from src.services.reporting.windows import ReportWindow, days_in_month
from src.utils.logging import get_logger

logger = get_logger(__name__)

ZERO = Decimal("0")


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class TrendPoint:
    """One bucket of a trend series."""

    bucket: int
    label: str
    count: int = 0
    amount: Decimal = ZERO


@dataclass(frozen=True)
class CategoryTotal:
    category: Any
    count: int = 0
    amount: Decimal = ZERO


@dataclass(frozen=True)
class WindowedRollup:
    """Lifetime totals plus the same figures restricted to each named window."""

    total_count: int = 0
    total_amount: Decimal = ZERO
    counts: dict[str, int] = field(default_factory=dict)
    amounts: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class ConditionalRollup:
    total_count: int = 0
    total_amount: Decimal = ZERO
    amounts: dict[str, Decimal] = field(default_factory=dict)


class TrendGranularity(str, Enum):
    MONTH = "month"
    DAY = "day"


class BreakdownOrder(str, Enum):
    COUNT = "count"
    AMOUNT = "amount"


# =============================================================================
# Helpers
# =============================================================================


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def single_bucket(buckets: Sequence[Bucket]) -> Mapping[str, Any]:
    """Values of an ungrouped aggregation; empty when the reader returned nothing."""
    return buckets[0].values if buckets else {}


def month_label(month: int) -> str:
    return calendar.month_abbr[month]


def densify(
    buckets: Iterable[Bucket],
    index: Sequence[int],
    label: Callable[[int], str] = str,
) -> list[TrendPoint]:
    """
    Reconcile a sparse grouped result against a full bucket index.

    Every index entry yields exactly one point, in index order; buckets
    absent from the sparse result become zero points. Buckets outside the
    index are dropped.
    """
    sparse: dict[int, Bucket] = {}
    for bucket in buckets:
        if bucket.key is not None:
            sparse[int(bucket.key)] = bucket

    points = []
    for position in index:
        bucket = sparse.get(position)
        if bucket is None:
            points.append(TrendPoint(bucket=position, label=label(position)))
        else:
            points.append(
                TrendPoint(
                    bucket=position,
                    label=label(position),
                    count=int(bucket.values.get("count") or 0),
                    amount=to_decimal(bucket.values.get("amount")),
                )
            )
    return points


def status_bucket_accumulators(
    status_buckets: Mapping[str, Iterable[ClaimStatus]],
) -> dict[str, ConditionalSum]:
    """One conditional sum per bucket: `{name}_amount`."""
    return {
        f"{name}_amount": ConditionalSum(FieldIn("status", frozenset(statuses)))
        for name, statuses in status_buckets.items()
    }


# =============================================================================
# Engine
# =============================================================================


class AggregationEngine:
    """Computes rollups, breakdowns and trend series over the ledger."""

    def __init__(self, ledger: LedgerReader, directory: DirectoryReader):
        self._ledger = ledger
        self._directory = directory

    async def windowed_rollup(self, anchors: Mapping[str, datetime]) -> WindowedRollup:
        """
        Lifetime count/amount plus count/amount since each anchor.

        Amounts come from a single aggregation pass with one conditional sum
        per anchor; counts are independent count queries.
        """
        accumulators: dict[str, Any] = {"count": Count(), "amount": Sum("amount")}
        for name, start in anchors.items():
            accumulators[f"{name}_amount"] = ConditionalSum(FieldAtLeast("created_at", start))

        names = list(anchors)
        buckets, *counts = await asyncio.gather(
            self._ledger.aggregate(AggregationSpec(accumulators=accumulators)),
            *(self._ledger.count(ClaimFilter(created_from=anchors[name])) for name in names),
        )
        values = single_bucket(buckets)

        return WindowedRollup(
            total_count=int(values.get("count") or 0),
            total_amount=to_decimal(values.get("amount")),
            counts={name: int(count) for name, count in zip(names, counts)},
            amounts={name: to_decimal(values.get(f"{name}_amount")) for name in names},
        )

    async def conditional_rollup(
        self,
        window: Optional[ReportWindow],
        status_buckets: Mapping[str, Iterable[ClaimStatus]],
    ) -> ConditionalRollup:
        """Totals for the window with the amount split by status bucket, in one pass."""
        accumulators: dict[str, Any] = {"count": Count(), "amount": Sum("amount")}
        accumulators.update(status_bucket_accumulators(status_buckets))

        spec = AggregationSpec(
            accumulators=accumulators,
            match=window.as_filter() if window else ClaimFilter(),
        )
        values = single_bucket(await self._ledger.aggregate(spec))

        return ConditionalRollup(
            total_count=int(values.get("count") or 0),
            total_amount=to_decimal(values.get("amount")),
            amounts={name: to_decimal(values.get(f"{name}_amount")) for name in status_buckets},
        )

    async def breakdown(
        self,
        dimension: GroupKey,
        *,
        window: Optional[ReportWindow] = None,
        order: BreakdownOrder = BreakdownOrder.COUNT,
        limit: Optional[int] = None,
    ) -> list[CategoryTotal]:
        """
        Group claims by a categorical dimension.

        Ordered by the chosen measure descending, then the other measure
        descending, then category ascending.
        """
        other = BreakdownOrder.AMOUNT if order is BreakdownOrder.COUNT else BreakdownOrder.COUNT
        spec = AggregationSpec(
            accumulators={"count": Count(), "amount": Sum("amount")},
            match=window.as_filter() if window else ClaimFilter(),
            group_key=dimension,
            sort=(SortKey(order.value), SortKey(other.value)),
            limit=limit,
        )
        buckets = await self._ledger.aggregate(spec)
        return [
            CategoryTotal(
                category=bucket.key,
                count=int(bucket.values.get("count") or 0),
                amount=to_decimal(bucket.values.get("amount")),
            )
            for bucket in buckets
        ]

    async def trend(self, window: ReportWindow, granularity: TrendGranularity) -> list[TrendPoint]:
        """
        Dense trend series for a calendar year (12 points) or month (one
        point per day).
        """
        if granularity is TrendGranularity.MONTH:
            group_key = GroupKey.CREATED_MONTH
            index = list(range(1, 13))
            label: Callable[[int], str] = month_label
        else:
            group_key = GroupKey.CREATED_DAY
            index = list(range(1, days_in_month(window.start.year, window.start.month) + 1))
            label = str

        spec = AggregationSpec(
            accumulators={"count": Count(), "amount": Sum("amount")},
            match=window.as_filter(),
            group_key=group_key,
            sort=(SortKey("key", descending=False),),
        )
        buckets = await self._ledger.aggregate(spec)
        points = densify(buckets, index, label)
        logger.debug(
            f"Trend {granularity.value}: {len(buckets)} populated of {len(points)} buckets"
        )
        return points

    async def active_accounts(self) -> tuple[int, dict[str, int]]:
        """Active account total and per-role counts."""
        account_filter = AccountFilter(status=AccountStatus.ACTIVE)
        total, by_role = await asyncio.gather(
            self._directory.count(account_filter),
            self._directory.count_by("role", account_filter),
        )
        return total, {str(role): count for role, count in by_role}
