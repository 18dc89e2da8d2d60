from __future__ import annotations

from fastapi import HTTPException, Request

from cardvault.domain.errors import QuotaExceeded
from cardvault.services.record_store import RecordStore

# RFC 4918 "Insufficient Storage"
HTTP_INSUFFICIENT_STORAGE = 507


def get_record_store(request: Request) -> RecordStore:
    store = getattr(getattr(request.app, "state", None), "record_store", None)
    if not store:
        raise RuntimeError("RecordStore not configured")
    return store


def quota_http_error(exc: QuotaExceeded) -> HTTPException:
    return HTTPException(
        HTTP_INSUFFICIENT_STORAGE,
        {"error": "quota_exceeded", "percentage_used": exc.percentage_used, "message": exc.message},
    )
