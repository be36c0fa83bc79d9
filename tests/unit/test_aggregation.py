"""
Unit Tests for the Aggregation Engine
Rollups, breakdowns and dense trend series over in-memory readers
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from src.core.enums import MONTHLY_STATUS_BUCKETS, AccountStatus, ClaimStatus, UserRole
from src.services.readers import Bucket, GroupKey, InMemoryDirectory, InMemoryLedger
from src.services.reporting.aggregation import (
    AggregationEngine,
    BreakdownOrder,
    TrendGranularity,
    TrendPoint,
    densify,
    month_label,
)
from src.services.reporting.windows import month_window, year_window
from tests.fixtures import build_account, build_claim


def _engine(claims, accounts=()):
    directory = InMemoryDirectory(accounts)
    return AggregationEngine(InMemoryLedger(claims, directory), directory)


# =============================================================================
# Densification
# =============================================================================


@pytest.mark.unit
class TestDensify:
    def test_every_index_entry_yields_one_point(self):
        buckets = [
            Bucket(key=3, values={"count": 2, "amount": Decimal("40")}),
            Bucket(key=11, values={"count": 1, "amount": Decimal("5.5")}),
        ]

        points = densify(buckets, list(range(1, 13)), month_label)

        assert [p.bucket for p in points] == list(range(1, 13))
        assert points[2] == TrendPoint(bucket=3, label="Mar", count=2, amount=Decimal("40"))
        assert points[10].amount == Decimal("5.5")
        zero_points = [p for p in points if p.bucket not in (3, 11)]
        assert all(p.count == 0 and p.amount == 0 for p in zero_points)

    def test_buckets_outside_index_are_dropped(self):
        buckets = [Bucket(key=31, values={"count": 1, "amount": Decimal("1")})]

        points = densify(buckets, list(range(1, 30)))

        assert len(points) == 29
        assert sum(p.count for p in points) == 0

    def test_none_keys_ignored(self):
        points = densify([Bucket(key=None, values={"count": 4, "amount": 1})], [1, 2])

        assert [p.count for p in points] == [0, 0]

    def test_missing_values_become_zero(self):
        points = densify([Bucket(key=1, values={"count": None, "amount": None})], [1])

        assert points[0].count == 0
        assert points[0].amount == Decimal("0")

    def test_default_label_is_bucket_number(self):
        assert [p.label for p in densify([], [1, 2, 3])] == ["1", "2", "3"]


# =============================================================================
# Trend Series
# =============================================================================


@pytest.mark.unit
class TestTrend:
    @pytest.mark.asyncio
    async def test_yearly_trend_has_twelve_points(self, march_stores):
        ledger, directory = march_stores
        engine = AggregationEngine(ledger, directory)

        points = await engine.trend(year_window(2024), TrendGranularity.MONTH)

        assert len(points) == 12
        assert [p.label for p in points[:4]] == ["Jan", "Feb", "Mar", "Apr"]
        assert (points[2].count, points[2].amount) == (2, Decimal("150"))
        assert (points[3].count, points[3].amount) == (1, Decimal("30"))
        assert sum(p.count for p in points) == 3

    @pytest.mark.asyncio
    async def test_daily_trend_covers_every_day(self):
        engine = _engine(
            [build_claim(10, ClaimStatus.NEW, datetime(2024, 2, 29, 23, 0, tzinfo=UTC))]
        )

        points = await engine.trend(month_window(2024, 2), TrendGranularity.DAY)

        assert len(points) == 29
        assert points[-1].bucket == 29
        assert points[-1].count == 1

    @pytest.mark.asyncio
    async def test_other_years_excluded(self):
        engine = _engine(
            [
                build_claim(10, ClaimStatus.NEW, datetime(2023, 3, 1, tzinfo=UTC)),
                build_claim(20, ClaimStatus.NEW, datetime(2025, 3, 1, tzinfo=UTC)),
            ]
        )

        points = await engine.trend(year_window(2024), TrendGranularity.MONTH)

        assert all(p.count == 0 for p in points)


# =============================================================================
# Rollups
# =============================================================================


@pytest.mark.unit
class TestRollups:
    @pytest.mark.asyncio
    async def test_windowed_amounts_match_raw_sums(self):
        claims = [
            build_claim(10, ClaimStatus.PAID, datetime(2023, 12, 31, 23, 59, tzinfo=UTC)),
            build_claim(20, ClaimStatus.PAID, datetime(2024, 1, 15, tzinfo=UTC)),
            build_claim(40, ClaimStatus.NEW, datetime(2024, 3, 1, tzinfo=UTC)),
            build_claim("0.5", ClaimStatus.NEW, datetime(2024, 3, 24, tzinfo=UTC)),
        ]
        anchors = {
            "monthly": datetime(2024, 3, 1, tzinfo=UTC),
            "yearly": datetime(2024, 1, 1, tzinfo=UTC),
        }

        rollup = await _engine(claims).windowed_rollup(anchors)

        assert rollup.total_count == 4
        assert rollup.total_amount == sum(c.amount for c in claims)
        for name, start in anchors.items():
            in_window = [c for c in claims if c.created_at >= start]
            assert rollup.counts[name] == len(in_window)
            assert rollup.amounts[name] == sum(c.amount for c in in_window)

    @pytest.mark.asyncio
    async def test_empty_ledger_rolls_up_to_zero(self):
        rollup = await _engine([]).windowed_rollup({"monthly": datetime(2024, 3, 1, tzinfo=UTC)})

        assert rollup.total_count == 0
        assert rollup.total_amount == Decimal("0")
        assert rollup.counts == {"monthly": 0}
        assert rollup.amounts == {"monthly": Decimal("0")}

    @pytest.mark.asyncio
    async def test_conditional_rollup_splits_by_status_bucket(self, march_stores):
        ledger, directory = march_stores
        engine = AggregationEngine(ledger, directory)

        totals = await engine.conditional_rollup(month_window(2024, 3), MONTHLY_STATUS_BUCKETS)

        assert totals.total_count == 2
        assert totals.total_amount == Decimal("150")
        assert totals.amounts == {
            "approved": Decimal("100"),
            "paid": Decimal("50"),
            "pending": Decimal("0"),
        }

    @pytest.mark.asyncio
    async def test_unlisted_statuses_count_only_in_totals(self):
        claims = [
            build_claim(70, ClaimStatus.REJECTED, datetime(2024, 3, 2, tzinfo=UTC)),
            build_claim(5, ClaimStatus.NEW, datetime(2024, 3, 3, tzinfo=UTC)),
        ]

        totals = await _engine(claims).conditional_rollup(month_window(2024, 3), MONTHLY_STATUS_BUCKETS)

        assert totals.total_amount == Decimal("75")
        assert totals.amounts["pending"] == Decimal("5")
        assert sum(totals.amounts.values()) == Decimal("5")


# =============================================================================
# Breakdowns
# =============================================================================


@pytest.mark.unit
class TestBreakdown:
    @pytest.mark.asyncio
    async def test_ties_broken_by_other_measure_then_key(self):
        when = datetime(2024, 3, 1, tzinfo=UTC)
        claims = [
            build_claim(10, ClaimStatus.NEW, when, category="travel"),
            build_claim(30, ClaimStatus.NEW, when, category="meals"),
            build_claim(30, ClaimStatus.NEW, when, category="lodging"),
            build_claim(1, ClaimStatus.NEW, when, category="office"),
            build_claim(1, ClaimStatus.NEW, when, category="office"),
        ]

        totals = await _engine(claims).breakdown(GroupKey.CATEGORY, order=BreakdownOrder.COUNT)

        assert [t.category for t in totals] == ["office", "lodging", "meals", "travel"]
        assert totals[0].count == 2
        assert totals[0].amount == Decimal("2")

    @pytest.mark.asyncio
    async def test_amount_order_with_limit(self):
        when = datetime(2024, 3, 1, tzinfo=UTC)
        claims = [
            build_claim(5, ClaimStatus.NEW, when, category="a"),
            build_claim(50, ClaimStatus.NEW, when, category="b"),
            build_claim(20, ClaimStatus.NEW, when, category="c"),
        ]

        totals = await _engine(claims).breakdown(
            GroupKey.CATEGORY, order=BreakdownOrder.AMOUNT, limit=2
        )

        assert [t.category for t in totals] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_department_breakdown_skips_unresolved_submitters(self, alice, bob):
        when = datetime(2024, 3, 1, tzinfo=UTC)
        departed = build_account("Gone Person", department="Legal")
        claims = [
            build_claim(100, ClaimStatus.PAID, when, user_id=alice.id),
            build_claim(60, ClaimStatus.PAID, when, user_id=bob.id),
            build_claim(999, ClaimStatus.PAID, when, user_id=departed.id),
        ]
        engine = _engine(claims, [alice, bob])

        departments = await engine.breakdown(
            GroupKey.SUBMITTER_DEPARTMENT, order=BreakdownOrder.AMOUNT
        )
        rollup = await engine.windowed_rollup({})

        assert [d.category for d in departments] == ["Engineering", "Sales"]
        assert rollup.total_amount == Decimal("1159")

    @pytest.mark.asyncio
    async def test_status_breakdown_keys_are_plain_values(self, march_stores):
        ledger, directory = march_stores

        totals = await AggregationEngine(ledger, directory).breakdown(GroupKey.STATUS)

        assert sorted(t.category for t in totals) == ["approved", "paid", "pending"]


@pytest.mark.unit
class TestActiveAccounts:
    @pytest.mark.asyncio
    async def test_counts_only_active_accounts(self):
        accounts = [
            build_account("A", role=UserRole.ADMIN),
            build_account("B", role=UserRole.EMPLOYEE),
            build_account("C", role=UserRole.EMPLOYEE),
            build_account("D", role=UserRole.EMPLOYEE, status=AccountStatus.INACTIVE),
        ]

        total, by_role = await _engine([], accounts).active_accounts()

        assert total == 3
        assert by_role == {"admin": 1, "employee": 2}
