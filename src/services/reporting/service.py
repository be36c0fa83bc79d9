"""
Report Service.

Composes the summary, monthly-detail and export reports from the
aggregation engine and the raw readers.

Independent queries of one report run concurrently, each bounded by the
configured timeout. Any failing query fails the whole report with
`ReportGenerationError`; no partial report is returned. After a report is
composed, an audit entry is written through the activity sink; sink
failures are logged and never reach the caller.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date, datetime
from typing import Any, Optional

from src.core.enums import MONTHLY_STATUS_BUCKETS, ActivityAction
from src.schemas.report import (
    AccountSummary,
    ActivityEntry,
    CategoryTotalSchema,
    ClaimItem,
    ClaimTotals,
    ContributorTotal,
    FinancialTotals,
    MonthlyReport,
    MonthlyTotals,
    ReportPeriod,
    SummaryReport,
    TrendPointSchema,
    UserTotals,
)
from src.services.readers.base import (
    ALL_JOINS,
    ActivityReader,
    ActivitySink,
    ActorContext,
    ClaimJoin,
    ClaimRecord,
    DirectoryReader,
    GroupKey,
    LedgerReader,
)
from src.services.reporting.aggregation import (
    AggregationEngine,
    BreakdownOrder,
    CategoryTotal,
    TrendGranularity,
    TrendPoint,
)
from src.services.reporting.windows import (
    date_range_window,
    month_to_date,
    month_window,
    year_to_date,
    year_window,
)
from src.utils.dates import utc_now
from src.utils.logging import get_logger

logger = get_logger(__name__)

RECENT_ACTIVITY_FIELDS = (
    "action",
    "user_name",
    "user_role",
    "entity_type",
    "entity_id",
    "details",
    "timestamp",
)
UNKNOWN_USER = "Unknown User"


# =============================================================================
# Exceptions
# =============================================================================


class ReportServiceError(Exception):
    """Base exception for report service errors."""

    pass


class ReportGenerationError(ReportServiceError):
    """Raised when a report cannot be composed because a query failed."""

    def __init__(self, report: str, message: Optional[str] = None):
        super().__init__(message or f"Failed to generate {report} report")
        self.report = report


class ReportQueryTimeoutError(ReportGenerationError):
    """Raised when a report query exceeds the configured timeout."""

    pass


# =============================================================================
# Service
# =============================================================================


def _trend_schema(points: list[TrendPoint]) -> list[TrendPointSchema]:
    return [
        TrendPointSchema(bucket=p.bucket, label=p.label, count=p.count, amount=p.amount)
        for p in points
    ]


def _category_schema(totals: list[CategoryTotal]) -> list[CategoryTotalSchema]:
    return [
        CategoryTotalSchema(
            category=None if t.category is None else str(t.category),
            count=t.count,
            amount=t.amount,
        )
        for t in totals
    ]


class ReportService:
    """Builds report payloads on demand; holds no state between requests."""

    def __init__(
        self,
        ledger: LedgerReader,
        directory: DirectoryReader,
        activity: ActivityReader,
        activity_sink: Optional[ActivitySink] = None,
        *,
        query_timeout: float = 30.0,
        recent_activity_limit: int = 10,
        top_contributors_limit: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ledger = ledger
        self.directory = directory
        self.activity = activity
        self.activity_sink = activity_sink
        self.engine = AggregationEngine(ledger, directory)
        self.query_timeout = query_timeout
        self.recent_activity_limit = recent_activity_limit
        self.top_contributors_limit = top_contributors_limit
        self._clock = clock

    # =========================================================================
    # Plumbing
    # =========================================================================

    async def _gather(self, report: str, *queries: Awaitable[Any]) -> list[Any]:
        """Run independent queries concurrently; the first failure fails them all."""
        tasks = [asyncio.ensure_future(asyncio.wait_for(q, self.query_timeout)) for q in queries]
        try:
            return list(await asyncio.gather(*tasks))
        except asyncio.TimeoutError as e:
            logger.error(f"{report} report query timed out after {self.query_timeout}s")
            raise ReportQueryTimeoutError(
                report, f"{report} report query exceeded {self.query_timeout}s"
            ) from e
        except Exception as e:
            logger.error(f"{report} report query failed: {e!r}")
            raise ReportGenerationError(report) from e
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def _record_activity(
        self,
        actor: Optional[ActorContext],
        action: ActivityAction,
        details: str,
    ) -> None:
        if self.activity_sink is None:
            return
        try:
            await asyncio.wait_for(
                self.activity_sink.record(actor, action.value, "system", "reports", details),
                self.query_timeout,
            )
        except Exception as e:
            logger.warning(f"Failed to log activity: {e!r}")

    # =========================================================================
    # Summary
    # =========================================================================

    async def summary_report(self, actor: Optional[ActorContext] = None) -> SummaryReport:
        """System-wide totals, breakdowns, this year's trend and recent activity."""
        now = self._clock()
        month_start = month_to_date(now).start
        year_start = year_to_date(now).start

        (
            (active_total, by_role),
            rollup,
            by_status,
            by_department,
            monthly_trend,
            recent,
        ) = await self._gather(
            "summary",
            self.engine.active_accounts(),
            self.engine.windowed_rollup({"monthly": month_start, "yearly": year_start}),
            self.engine.breakdown(GroupKey.STATUS, order=BreakdownOrder.COUNT),
            self.engine.breakdown(GroupKey.SUBMITTER_DEPARTMENT, order=BreakdownOrder.AMOUNT),
            self.engine.trend(year_window(now.year), TrendGranularity.MONTH),
            self.activity.find_recent(self.recent_activity_limit, RECENT_ACTIVITY_FIELDS),
        )

        report = SummaryReport(
            users=UserTotals(total=active_total, by_role=by_role),
            claims=ClaimTotals(
                total=rollup.total_count,
                monthly=rollup.counts["monthly"],
                yearly=rollup.counts["yearly"],
            ),
            financial=FinancialTotals(
                total_amount=rollup.total_amount,
                monthly_amount=rollup.amounts["monthly"],
                yearly_amount=rollup.amounts["yearly"],
            ),
            claims_by_status=_category_schema(by_status),
            claims_by_department=_category_schema(by_department),
            monthly_trend=_trend_schema(monthly_trend),
            recent_activity=[ActivityEntry.model_validate(entry) for entry in recent],
        )

        logger.info(f"Summary report generated: {rollup.total_count} claims")
        await self._record_activity(actor, ActivityAction.VIEW, "Viewed system summary report")
        return report

    # =========================================================================
    # Monthly
    # =========================================================================

    async def monthly_report(
        self,
        year: int,
        month: int,
        actor: Optional[ActorContext] = None,
    ) -> MonthlyReport:
        """Detail for one calendar month: claims, status split, top submitters, daily trend."""
        window = month_window(year, month)

        claims, totals, top, daily_trend = await self._gather(
            "monthly",
            self.ledger.find(window.as_filter(), join=(ClaimJoin.SUBMITTER,)),
            self.engine.conditional_rollup(window, MONTHLY_STATUS_BUCKETS),
            self.engine.breakdown(
                GroupKey.SUBMITTER,
                window=window,
                order=BreakdownOrder.AMOUNT,
                limit=self.top_contributors_limit,
            ),
            self.engine.trend(window, TrendGranularity.DAY),
        )

        submitter_ids = [t.category for t in top if t.category is not None]
        (accounts,) = await self._gather("monthly", self.directory.find_by_ids(submitter_ids))
        accounts_by_id = {account.id: account for account in accounts}

        contributors = []
        for total in top:
            account = accounts_by_id.get(total.category)
            if account is None:
                user = AccountSummary(id=total.category, name=UNKNOWN_USER)
            else:
                user = AccountSummary.model_validate(account.as_actor())
            contributors.append(ContributorTotal(user=user, count=total.count, amount=total.amount))

        report = MonthlyReport(
            period=ReportPeriod(
                year=year,
                month=month,
                month_name=window.start.strftime("%B"),
                start_date=window.start,
                end_date=window.end,
            ),
            summary=MonthlyTotals(
                total_claims=totals.total_count,
                total_amount=totals.total_amount,
                approved_amount=totals.amounts.get("approved", 0),
                paid_amount=totals.amounts.get("paid", 0),
                pending_amount=totals.amounts.get("pending", 0),
            ),
            claims=[ClaimItem.from_record(record) for record in claims],
            claims_by_user=contributors,
            daily_trend=_trend_schema(daily_trend),
        )

        logger.info(f"Monthly report generated for {year}-{month:02d}: {totals.total_count} claims")
        await self._record_activity(
            actor, ActivityAction.VIEW, f"Viewed monthly report for {year}-{month}"
        )
        return report

    # =========================================================================
    # Export
    # =========================================================================

    async def export_claims(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        export_format: str = "csv",
        actor: Optional[ActorContext] = None,
    ) -> list[ClaimRecord]:
        """
        Claims in an inclusive date range with every account reference resolved,
        newest claim date first.
        """
        claim_filter = date_range_window(start_date, end_date)

        (claims,) = await self._gather(
            "export",
            self.ledger.find(claim_filter, join=ALL_JOINS, order_by="claim_date", descending=True),
        )

        logger.info(f"Export prepared: {len(claims)} claims ({export_format})")
        await self._record_activity(
            actor, ActivityAction.EXPORT, f"Exported claims data in {export_format} format"
        )
        return claims
