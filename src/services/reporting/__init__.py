"""
Report composition: time windows, the aggregation engine and the report service.
"""

from src.services.reporting.aggregation import (
    AggregationEngine,
    BreakdownOrder,
    CategoryTotal,
    TrendGranularity,
    TrendPoint,
    densify,
)
from src.services.reporting.service import (
    ReportGenerationError,
    ReportQueryTimeoutError,
    ReportService,
    ReportServiceError,
)
from src.services.reporting.windows import ReportWindow, month_window, year_window

__all__ = [
    "AggregationEngine",
    "BreakdownOrder",
    "CategoryTotal",
    "TrendGranularity",
    "TrendPoint",
    "densify",
    "ReportGenerationError",
    "ReportQueryTimeoutError",
    "ReportService",
    "ReportServiceError",
    "ReportWindow",
    "month_window",
    "year_window",
]
