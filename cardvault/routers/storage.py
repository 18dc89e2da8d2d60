from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from cardvault.domain.errors import ClearIncomplete, QuotaExceeded
from cardvault.routers.deps import get_record_store, quota_http_error

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("")
def storage_info(request: Request):
    return get_record_store(request).storage_info().as_dict()


@router.post("/optimize")
def optimize(request: Request):
    store = get_record_store(request)
    try:
        result = store.optimize_storage()
    except QuotaExceeded as exc:
        raise quota_http_error(exc)
    return {
        "freed_size": result.freed_size,
        "new_size": result.new_size,
        "freed_kb": result.freed_kb,
        "new_size_kb": result.new_size_kb,
    }


@router.post("/evict")
def evict_old_photos(request: Request, keep_last: int | None = None):
    if keep_last is not None and keep_last < 0:
        raise HTTPException(400, "keep_last must be >= 0")
    store = get_record_store(request)
    try:
        result = store.evict_photos_keeping_last(keep_last)
    except QuotaExceeded as exc:
        raise quota_http_error(exc)
    return {"removed_count": result.removed_count}


@router.delete("")
def clear_storage(request: Request):
    store = get_record_store(request)
    try:
        removed = store.clear_all()
    except ClearIncomplete as exc:
        raise HTTPException(503, {"error": "clear_incomplete", "remaining": exc.remaining, "removed_keys": exc.removed})
    return {"removed_keys": removed, "record_count": len(store.get_all())}
