"""
Export Formatters for Claims Data.

Renders claim export tables as CSV and resolves the export format,
filename and content type for the /api/reports/export endpoint.

CSV layout: a literal header row, then one row per claim with every field
wrapped in double quotes (numbers included). Missing values render as
empty strings.
"""

import csv
import io
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from src.services.readers.base import ActorRef, ClaimRecord
from src.utils.dates import as_utc


class ExportFormat(str, Enum):
    """Supported export formats."""

    CSV = "csv"
    JSON = "json"


CSV_HEADERS = [
    "Claim ID",
    "Date",
    "Employee ID",
    "Employee Name",
    "Department",
    "Description",
    "Category",
    "Amount",
    "Currency",
    "Status",
    "Approved By",
    "Approved At",
    "Paid By",
    "Paid At",
    "Payment Reference",
    "Notes",
]

DATE_FORMAT = "%d/%m/%Y"
DATETIME_FORMAT = "%d/%m/%Y %H:%M"


def parse_export_format(value: Optional[str]) -> ExportFormat:
    """Anything other than a recognised format falls through to CSV."""
    if value is not None:
        try:
            return ExportFormat(value.strip().lower())
        except ValueError:
            pass
    return ExportFormat.CSV


def _format_value(value: Any) -> str:
    """Format a value for CSV output."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return as_utc(value).strftime(DATETIME_FORMAT)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def _actor_field(actor: Optional[ActorRef], name: str) -> Any:
    if actor is None:
        return None
    return getattr(actor, name)


def claim_to_row(claim: ClaimRecord) -> list[str]:
    """Project a claim onto the export columns, in `CSV_HEADERS` order."""
    values = [
        claim.claim_id,
        claim.claim_date,
        _actor_field(claim.submitter, "employee_id"),
        _actor_field(claim.submitter, "name"),
        _actor_field(claim.submitter, "department"),
        claim.description,
        claim.category,
        claim.amount,
        claim.currency,
        claim.status,
        _actor_field(claim.approver, "name"),
        claim.approved_at,
        _actor_field(claim.payer, "name"),
        claim.paid_at,
        claim.payment_reference,
        claim.notes,
    ]
    return [_format_value(value) for value in values]


def format_claims_csv(claims: Iterable[ClaimRecord]) -> str:
    """
    Render claims as CSV text.

    Args:
        claims: Claims with account references resolved

    Returns:
        CSV string (header row plus one line per claim, no trailing newline)
    """
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")

    output.write(",".join(CSV_HEADERS) + "\n")
    writer.writerows(claim_to_row(claim) for claim in claims)

    return output.getvalue().rstrip("\n")


def generate_filename(
    now: datetime,
    prefix: str = "claims_export",
    format: ExportFormat = ExportFormat.CSV,
) -> str:
    """
    Generate a filename for the export.

    Example:
        >>> generate_filename(datetime(2024, 3, 5, 14, 7))
        'claims_export_2024-03-05_14-07.csv'
    """
    return f"{prefix}_{now.strftime('%Y-%m-%d_%H-%M')}.{format.value}"


def get_content_type(format: ExportFormat) -> str:
    """
    Get the Content-Type header for the export format.

    Args:
        format: Export format

    Returns:
        MIME type string
    """
    if format == ExportFormat.JSON:
        return "application/json"
    return "text/csv"
