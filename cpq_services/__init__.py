"""
cpq_services -- Imperative shell for quote costing.

    QuoteCostingService   -- orchestrates engines over a record store
    QuoteRecordStore      -- store protocol
    InMemoryRecordStore   -- dict-backed store
    SqlRecordStore        -- SQLAlchemy-backed store
"""

from cpq_services.quote_costing_service import QuoteCostingService
from cpq_services.record_store import InMemoryRecordStore, QuoteHeader, QuoteRecordStore
from cpq_services.sql_store import SqlRecordStore

__all__ = [
    "InMemoryRecordStore",
    "QuoteCostingService",
    "QuoteHeader",
    "QuoteRecordStore",
    "SqlRecordStore",
]
