from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response

from cardvault.domain.errors import QuotaExceeded
from cardvault.domain.records import StudentRecord
from cardvault.routers.deps import get_record_store, quota_http_error

router = APIRouter(prefix="/students", tags=["students"])


def _not_found() -> HTTPException:
    return HTTPException(404, "Student not found")


def _as_payload(record: StudentRecord) -> dict:
    return record.to_dict()


@router.get("")
def list_students(request: Request):
    store = get_record_store(request)
    return [_as_payload(r) for r in store.get_all()]


@router.get("/qr/{code}")
def student_by_qr(code: str, request: Request):
    record = get_record_store(request).get_by_qr_code(code)
    if not record:
        raise _not_found()
    return _as_payload(record)


@router.get("/{student_id}")
def get_student(student_id: str, request: Request):
    record = get_record_store(request).get_by_id(student_id)
    if not record:
        raise _not_found()
    return _as_payload(record)


@router.post("", status_code=201)
def create_student(payload: dict, request: Request):
    store = get_record_store(request)
    photo = payload.pop("photo", None)
    try:
        record = store.add(payload, photo=photo)
    except QuotaExceeded as exc:
        raise quota_http_error(exc)
    return _as_payload(record)


@router.patch("/{student_id}")
def update_student(student_id: str, payload: dict, request: Request):
    store = get_record_store(request)
    try:
        record = store.update(student_id, payload)
    except QuotaExceeded as exc:
        raise quota_http_error(exc)
    if record is None:
        raise _not_found()
    return _as_payload(record)


@router.delete("/{student_id}", status_code=204)
def delete_student(student_id: str, request: Request):
    store = get_record_store(request)
    try:
        store.delete(student_id)
    except QuotaExceeded as exc:
        raise quota_http_error(exc)
    return Response(status_code=204)
