"""Quota-bounded storage for student identity-card records."""

from cardvault.domain.errors import QuotaExceeded
from cardvault.services.record_store import RecordStore

__all__ = ["QuotaExceeded", "RecordStore"]
