"""
Unit Tests for In-Memory Readers
Filter, join, aggregation and activity semantics shared with the SQL readers
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from src.core.enums import ClaimStatus, UserRole
from src.services.readers import (
    ACTIVITY_FIELDS,
    ActorContext,
    AggregationSpec,
    ClaimFilter,
    ClaimJoin,
    ConditionalSum,
    Count,
    FieldIn,
    GroupKey,
    InMemoryActivityLog,
    InMemoryDirectory,
    InMemoryLedger,
    SortKey,
    Sum,
)
from tests.fixtures import build_account, build_claim


@pytest.mark.unit
class TestAggregationSpec:
    def test_requires_an_accumulator(self):
        with pytest.raises(ValueError):
            AggregationSpec(accumulators={})

    def test_rejects_unknown_sort_field(self):
        with pytest.raises(ValueError):
            AggregationSpec(accumulators={"count": Count()}, sort=(SortKey("amount"),))

    def test_rejects_unsummable_field(self):
        with pytest.raises(ValueError):
            AggregationSpec(accumulators={"total": Sum("category")})

    def test_key_name_reserved(self):
        with pytest.raises(ValueError):
            AggregationSpec(accumulators={"key": Count()})


@pytest.mark.unit
class TestInMemoryLedger:
    @pytest.mark.asyncio
    async def test_ungrouped_empty_aggregation_yields_one_zero_bucket(self):
        spec = AggregationSpec(accumulators={"count": Count(), "amount": Sum()})

        buckets = await InMemoryLedger().aggregate(spec)

        assert len(buckets) == 1
        assert buckets[0].key is None
        assert buckets[0].values["count"] == 0
        assert buckets[0].values["amount"] == Decimal("0")

    @pytest.mark.asyncio
    async def test_filter_bounds_are_half_open(self):
        ledger = InMemoryLedger(
            [
                build_claim(1, ClaimStatus.NEW, datetime(2024, 3, 1, tzinfo=UTC)),
                build_claim(2, ClaimStatus.NEW, datetime(2024, 4, 1, tzinfo=UTC)),
            ]
        )
        claim_filter = ClaimFilter(
            created_from=datetime(2024, 3, 1, tzinfo=UTC),
            created_before=datetime(2024, 4, 1, tzinfo=UTC),
        )

        assert await ledger.count(claim_filter) == 1

    @pytest.mark.asyncio
    async def test_find_resolves_only_requested_joins(self, march_stores):
        ledger, _ = march_stores

        claims = await ledger.find(join=(ClaimJoin.SUBMITTER,))

        assert all(c.submitter is not None for c in claims)
        assert all(c.approver is None and c.payer is None for c in claims)

    @pytest.mark.asyncio
    async def test_find_orders_by_field(self, march_stores):
        ledger, _ = march_stores

        ascending = await ledger.find(order_by="amount")
        descending = await ledger.find(order_by="amount", descending=True)

        assert [c.amount for c in ascending] == [Decimal("30"), Decimal("50"), Decimal("100")]
        assert [c.amount for c in descending] == [Decimal("100"), Decimal("50"), Decimal("30")]

    @pytest.mark.asyncio
    async def test_find_rejects_unknown_sort_field(self):
        with pytest.raises(ValueError):
            await InMemoryLedger().find(order_by="description")

    @pytest.mark.asyncio
    async def test_grouped_conditional_sums(self, march_stores):
        ledger, _ = march_stores
        spec = AggregationSpec(
            accumulators={
                "count": Count(),
                "settled": ConditionalSum(FieldIn("status", frozenset({ClaimStatus.PAID}))),
            },
            group_key=GroupKey.CREATED_MONTH,
            sort=(SortKey("key", descending=False),),
        )

        buckets = await ledger.aggregate(spec)

        assert [b.key for b in buckets] == [3, 4]
        assert buckets[0].values["count"] == 2
        assert buckets[0].values["settled"] == Decimal("50")
        assert buckets[1].values["settled"] == Decimal("0")

    @pytest.mark.asyncio
    async def test_group_by_submitter_with_limit(self, march_stores, alice):
        ledger, _ = march_stores
        spec = AggregationSpec(
            accumulators={"amount": Sum()},
            group_key=GroupKey.SUBMITTER,
            sort=(SortKey("amount"),),
            limit=1,
        )

        buckets = await ledger.aggregate(spec)

        assert len(buckets) == 1
        assert buckets[0].key == alice.id
        assert buckets[0].values["amount"] == Decimal("130")


@pytest.mark.unit
class TestInMemoryDirectory:
    @pytest.mark.asyncio
    async def test_count_by_sorted_by_key(self):
        directory = InMemoryDirectory(
            [
                build_account("A", role=UserRole.MANAGER),
                build_account("B", role=UserRole.ADMIN),
                build_account("C", role=UserRole.MANAGER),
            ]
        )

        assert await directory.count_by("role") == [("admin", 1), ("manager", 2)]

    @pytest.mark.asyncio
    async def test_count_by_rejects_unknown_field(self):
        with pytest.raises(ValueError):
            await InMemoryDirectory().count_by("email")

    @pytest.mark.asyncio
    async def test_find_by_ids_skips_unknown(self, alice, bob):
        directory = InMemoryDirectory([alice, bob])

        found = await directory.find_by_ids([alice.id, build_account().id])

        assert found == [alice]


@pytest.mark.unit
class TestInMemoryActivityLog:
    @pytest.mark.asyncio
    async def test_record_then_read_back(self):
        log = InMemoryActivityLog()
        actor = ActorContext(user_id=None, name="Ada", role="admin", user_agent="pytest")

        await log.record(actor, "view", "system", "reports", "Viewed system summary report")
        entries = await log.find_recent(5)

        assert len(entries) == 1
        assert set(entries[0]) == set(ACTIVITY_FIELDS)
        assert entries[0]["user_name"] == "Ada"
        assert entries[0]["user_agent"] == "pytest"
        assert entries[0]["timestamp"] is not None

    @pytest.mark.asyncio
    async def test_anonymous_actor_recorded_as_system(self):
        log = InMemoryActivityLog()

        await log.record(None, "export", "system", "reports")

        assert log.entries[0]["user_name"] == "System"
        assert log.entries[0]["user_role"] == "system"

    @pytest.mark.asyncio
    async def test_projection_and_ordering(self):
        when = datetime(2024, 3, 1, tzinfo=UTC)
        log = InMemoryActivityLog(
            [
                {"action": "login", "timestamp": when},
                {"action": "logout", "timestamp": when},
                {"action": "view", "timestamp": datetime(2024, 2, 1, tzinfo=UTC)},
            ]
        )

        entries = await log.find_recent(10, ("action",))

        assert entries == [{"action": "logout"}, {"action": "login"}, {"action": "view"}]

    @pytest.mark.asyncio
    async def test_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            await InMemoryActivityLog().find_recent(1, ("password",))
