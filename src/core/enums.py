"""
Core Enumerations for the Claims Reporting Service.

Closed value sets for claims, accounts and audit activity, plus the
status-bucket tables the reporting engine uses for conditional rollups.
"""

from enum import Enum


# =============================================================================
# Claim Enums
# =============================================================================


class ClaimStatus(str, Enum):
    """Claim lifecycle status."""

    NEW = "new"
    SUBMITTED = "submitted"
    PENDING = "pending"
    RECOMMENDATION = "recommendation"
    APPROVED = "approved"
    FURTHER_APPROVAL = "further_approval"
    PAID = "paid"
    REJECTED = "rejected"


# =============================================================================
# Account Enums
# =============================================================================


class UserRole(str, Enum):
    """Account role."""

    ADMIN = "admin"
    MANAGER = "manager"
    FINANCE = "finance"
    EMPLOYEE = "employee"


class AccountStatus(str, Enum):
    """Account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


# =============================================================================
# Audit Enums
# =============================================================================


class ActivityAction(str, Enum):
    """Action verbs recorded in the audit trail."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    VIEW = "view"
    EXPORT = "export"
    LOGIN = "login"
    LOGOUT = "logout"


# =============================================================================
# Reporting Tables
# =============================================================================

# Monthly report amount split: bucket name -> statuses contributing to it.
MONTHLY_STATUS_BUCKETS: dict[str, frozenset[ClaimStatus]] = {
    "approved": frozenset({ClaimStatus.APPROVED}),
    "paid": frozenset({ClaimStatus.PAID}),
    "pending": frozenset(
        {ClaimStatus.NEW, ClaimStatus.PENDING, ClaimStatus.RECOMMENDATION}
    ),
}
