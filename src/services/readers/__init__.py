"""
Store readers used by the reporting engine.

Source: Design Document Section 6 - Collaborator read contracts
"""

from src.services.readers.base import (
    ACTIVITY_FIELDS,
    ALL_JOINS,
    AccountFilter,
    AccountRecord,
    ActivityReader,
    ActivitySink,
    ActorContext,
    ActorRef,
    AggregationSpec,
    Bucket,
    ClaimFilter,
    ClaimJoin,
    ClaimRecord,
    ConditionalSum,
    Count,
    DirectoryReader,
    FieldAtLeast,
    FieldIn,
    GroupKey,
    LedgerReader,
    ReaderError,
    SortKey,
    Sum,
)
from src.services.readers.memory import (
    InMemoryActivityLog,
    InMemoryDirectory,
    InMemoryLedger,
)
from src.services.readers.sql import (
    SqlActivityReader,
    SqlActivitySink,
    SqlDirectoryReader,
    SqlLedgerReader,
)

__all__ = [
    # Records and filters
    "ACTIVITY_FIELDS",
    "ALL_JOINS",
    "AccountFilter",
    "AccountRecord",
    "ActorContext",
    "ActorRef",
    "ClaimFilter",
    "ClaimJoin",
    "ClaimRecord",
    # Aggregation spec
    "AggregationSpec",
    "Bucket",
    "ConditionalSum",
    "Count",
    "FieldAtLeast",
    "FieldIn",
    "GroupKey",
    "SortKey",
    "Sum",
    # Ports
    "ActivityReader",
    "ActivitySink",
    "DirectoryReader",
    "LedgerReader",
    "ReaderError",
    # Adapters
    "InMemoryActivityLog",
    "InMemoryDirectory",
    "InMemoryLedger",
    "SqlActivityReader",
    "SqlActivitySink",
    "SqlDirectoryReader",
    "SqlLedgerReader",
]
