"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

import os
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Settings are read at import time; configure the test environment first.
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-reporting-tests-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add project root to path for `src.` and `tests.` imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.enums import ClaimStatus, UserRole  # noqa: E402
from src.services.readers import (  # noqa: E402
    InMemoryActivityLog,
    InMemoryDirectory,
    InMemoryLedger,
)
from src.services.reporting.service import ReportService  # noqa: E402
from tests.fixtures import FIXED_NOW, build_account, build_claim  # noqa: E402


@pytest.fixture
def alice():
    return build_account("Alice Smith", department="Engineering", employee_id="EMP-001")


@pytest.fixture
def bob():
    return build_account("Bob Jones", department="Sales", employee_id="EMP-002")


@pytest.fixture
def admin_account():
    return build_account("Ada Admin", role=UserRole.ADMIN, department="Finance", employee_id="EMP-100")


@pytest.fixture
def march_claims(alice, bob, admin_account):
    """
    100 approved on 5 March 2024, 50 paid on 20 March 2024 and 30 pending
    on 1 April 2024.
    """
    return [
        build_claim(
            100,
            ClaimStatus.APPROVED,
            datetime(2024, 3, 5, 9, 30, tzinfo=UTC),
            user_id=alice.id,
            approved_by=admin_account.id,
            approved_at=datetime(2024, 3, 6, 10, 0, tzinfo=UTC),
        ),
        build_claim(
            50,
            ClaimStatus.PAID,
            datetime(2024, 3, 20, 14, 0, tzinfo=UTC),
            user_id=bob.id,
            category="meals",
            approved_by=admin_account.id,
            approved_at=datetime(2024, 3, 21, 9, 0, tzinfo=UTC),
            paid_by=admin_account.id,
            paid_at=datetime(2024, 3, 22, 16, 45, tzinfo=UTC),
            payment_reference="PAY-0001",
        ),
        build_claim(
            30,
            ClaimStatus.PENDING,
            datetime(2024, 4, 1, 8, 0, tzinfo=UTC),
            user_id=alice.id,
            notes='Taxi, "airport"',
        ),
    ]


@pytest.fixture
def march_stores(march_claims, alice, bob, admin_account):
    """In-memory ledger and directory over the March claims."""
    directory = InMemoryDirectory([alice, bob, admin_account])
    ledger = InMemoryLedger(march_claims, directory)
    return ledger, directory


@pytest.fixture
def activity_log():
    return InMemoryActivityLog()


@pytest.fixture
def report_service(march_stores, activity_log):
    """Report service over the March claims with a fixed clock."""
    ledger, directory = march_stores
    return ReportService(
        ledger,
        directory,
        activity_log,
        activity_log,
        clock=lambda: FIXED_NOW,
    )


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as an API test"
    )
