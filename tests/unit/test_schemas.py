"""
Unit Tests for Pydantic Schemas
Tests wire naming and defaults of the report payloads
"""

from datetime import UTC, date, datetime
from uuid import uuid4

import pytest

from src.core.enums import ClaimStatus
from src.schemas.report import (
    ClaimItem,
    ErrorResponse,
    MonthlyTotals,
    SummaryReport,
    SummaryReportResponse,
    TrendPointSchema,
)
from src.services.readers import ActorRef
from tests.fixtures import build_claim


@pytest.mark.unit
class TestReportSchemas:
    """Test report payload serialization"""

    def test_camel_case_on_the_wire(self):
        """Test that fields serialize with camelCase aliases"""
        payload = MonthlyTotals(total_claims=2, approved_amount=100).model_dump(by_alias=True)

        assert payload["totalClaims"] == 2
        assert payload["approvedAmount"] == 100.0
        assert payload["pendingAmount"] == 0.0

    def test_populate_by_alias(self):
        """Test that camelCase input is accepted too"""
        totals = MonthlyTotals.model_validate({"totalClaims": 3, "paidAmount": 5})

        assert totals.total_claims == 3
        assert totals.paid_amount == 5.0

    def test_trend_point_defaults(self):
        point = TrendPointSchema(bucket=3, label="Mar")

        assert (point.count, point.amount) == (0, 0.0)

    def test_empty_summary_has_no_nulls(self):
        """Test that an empty summary serializes zeros, never nulls"""
        payload = SummaryReportResponse(data=SummaryReport()).model_dump(by_alias=True)

        assert payload["success"] is True
        assert payload["data"]["financial"] == {
            "totalAmount": 0.0,
            "monthlyAmount": 0.0,
            "yearlyAmount": 0.0,
        }
        assert payload["data"]["users"] == {"total": 0, "byRole": {}}

    def test_error_envelope(self):
        """Test the failure envelope"""
        payload = ErrorResponse(message="Server error").model_dump(by_alias=True, exclude_none=True)

        assert payload == {"success": False, "message": "Server error"}


@pytest.mark.unit
class TestClaimItem:
    """Test claim projection for JSON exports"""

    def test_from_record(self):
        submitter = ActorRef(id=uuid4(), name="Alice Smith", department="Engineering", employee_id="EMP-001")
        record = build_claim(
            "42.10",
            ClaimStatus.APPROVED,
            datetime(2024, 3, 5, 9, 0, tzinfo=UTC),
            submitter=submitter,
        )

        payload = ClaimItem.from_record(record).model_dump(by_alias=True, mode="json")

        assert payload["date"] == "2024-03-05"
        assert payload["amount"] == 42.1
        assert payload["status"] == "approved"
        assert payload["submitter"]["employeeId"] == "EMP-001"
        assert payload["approvedBy"] is None

    def test_claim_date_by_field_name(self):
        item = ClaimItem(
            id=uuid4(),
            claim_id="CLM-1",
            claim_date=date(2024, 1, 2),
            amount=1,
            currency="USD",
            category="meals",
            description="",
            status="new",
            created_at=datetime(2024, 1, 2, tzinfo=UTC),
        )

        assert item.claim_date == date(2024, 1, 2)
