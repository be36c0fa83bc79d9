"""
SQLAlchemy Models for the Claims Reporting Service.

This module exports all database models for the application.
"""

from src.models.base import Base, TimeStampedModel, UUIDModel
from src.models.user import User
from src.models.claim import Claim
from src.models.audit import AuditLog

__all__ = [
    # Base classes
    "Base",
    "TimeStampedModel",
    "UUIDModel",
    # Directory
    "User",
    # Ledger
    "Claim",
    # Audit trail
    "AuditLog",
]
