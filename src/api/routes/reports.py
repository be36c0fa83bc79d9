"""
Report Routes
Summary, monthly and export endpoints for administrators
Source: https://fastapi.tiangolo.com/tutorial/bigger-applications/

Query parameters are handled permissively: a bad year or month falls back
to the current UTC period, unparsable dates are ignored and unknown export
formats fall through to CSV. Each substitution is logged.
"""

from datetime import MAXYEAR, MINYEAR, date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from src.api.config import settings
from src.api.deps import get_report_service, require_report_access
from src.schemas.report import (
    ClaimExportResponse,
    ClaimItem,
    MonthlyReportResponse,
    SummaryReportResponse,
)
from src.services.readers import ActorContext
from src.services.reporting.service import ReportService
from src.utils.dates import as_utc, utc_now
from src.utils.export_formatters import (
    ExportFormat,
    format_claims_csv,
    generate_filename,
    get_content_type,
    parse_export_format,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])


# =============================================================================
# Parameter Parsing
# =============================================================================


def _parse_int(value: Optional[str], name: str, low: int, high: int, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={value!r}, using {default}")
        return default
    if not low <= parsed <= high:
        logger.warning(f"Ignoring out-of-range {name}={parsed}, using {default}")
        return default
    return parsed


def resolve_period(year: Optional[str], month: Optional[str], now: datetime) -> tuple[int, int]:
    """Year and month to report on, defaulting each to the current UTC period."""
    # December windows end in the following year, so the last year is excluded
    resolved_year = _parse_int(year, "year", MINYEAR, MAXYEAR - 1, now.year)
    resolved_month = _parse_int(month, "month", 1, 12, now.month)
    return resolved_year, resolved_month


def parse_date_param(value: Optional[str], name: str) -> Optional[date]:
    """
    Accept `YYYY-MM-DD` or a full ISO timestamp; anything else is ignored.

    Timestamps with an offset are converted to their UTC calendar day.
    """
    if value is None or value.strip() == "":
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00"))).date()
    except (ValueError, OverflowError):
        logger.warning(f"Ignoring unparsable {name}={value!r}")
        return None


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/summary", response_model=SummaryReportResponse)
async def get_summary_report(
    actor: ActorContext = Depends(require_report_access),
    service: ReportService = Depends(get_report_service),
) -> SummaryReportResponse:
    """System-wide totals, breakdowns, this year's monthly trend and recent activity."""
    report = await service.summary_report(actor=actor)
    return SummaryReportResponse(data=report)


@router.get("/monthly", response_model=MonthlyReportResponse)
async def get_monthly_report(
    year: Optional[str] = Query(None),
    month: Optional[str] = Query(None, description="1-12"),
    actor: ActorContext = Depends(require_report_access),
    service: ReportService = Depends(get_report_service),
) -> MonthlyReportResponse:
    """Claims, status totals, top submitters and daily trend for one month."""
    resolved_year, resolved_month = resolve_period(year, month, utc_now())
    report = await service.monthly_report(resolved_year, resolved_month, actor=actor)
    return MonthlyReportResponse(data=report)


@router.get("/export", response_model=None)
async def export_claims(
    format: Optional[str] = Query(None, description="csv (default) or json"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    actor: ActorContext = Depends(require_report_access),
    service: ReportService = Depends(get_report_service),
) -> Response | ClaimExportResponse:
    """
    Export claims in an inclusive date range.

    CSV is returned as a file attachment; JSON uses the standard envelope.
    """
    export_format = parse_export_format(format)
    if format is not None and export_format.value != format.strip().lower():
        logger.warning(f"Unsupported export format {format!r}, using csv")

    claims = await service.export_claims(
        start_date=parse_date_param(start_date, "startDate"),
        end_date=parse_date_param(end_date, "endDate"),
        export_format=export_format.value,
        actor=actor,
    )

    if export_format == ExportFormat.JSON:
        return ClaimExportResponse(data=[ClaimItem.from_record(claim) for claim in claims])

    filename = generate_filename(utc_now(), settings.EXPORT_FILENAME_PREFIX, export_format)
    return Response(
        content=format_claims_csv(claims),
        media_type=get_content_type(export_format),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
