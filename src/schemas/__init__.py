"""
Pydantic Schemas for the Claims Reporting System.

This module exports the report payloads and response envelopes.
"""

from src.schemas.report import (
    AccountSummary,
    ActivityEntry,
    CategoryTotalSchema,
    ClaimExportResponse,
    ClaimItem,
    ClaimTotals,
    ContributorTotal,
    ErrorResponse,
    FinancialTotals,
    MonthlyReport,
    MonthlyReportResponse,
    MonthlyTotals,
    ReportPeriod,
    SummaryReport,
    SummaryReportResponse,
    TrendPointSchema,
    UserTotals,
)

__all__ = [
    "AccountSummary",
    "ActivityEntry",
    "CategoryTotalSchema",
    "ClaimExportResponse",
    "ClaimItem",
    "ClaimTotals",
    "ContributorTotal",
    "ErrorResponse",
    "FinancialTotals",
    "MonthlyReport",
    "MonthlyReportResponse",
    "MonthlyTotals",
    "ReportPeriod",
    "SummaryReport",
    "SummaryReportResponse",
    "TrendPointSchema",
    "UserTotals",
]
