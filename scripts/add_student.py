#!/usr/bin/env python3
"""
Register a student record (optionally with a photo) in the configured host store.

Usage:
  python scripts/add_student.py --nom Doe --prenom Jane [--faculte Sciences] [--photo path/to/photo.jpg]
"""
from __future__ import annotations

import argparse
import mimetypes
import sys
from pathlib import Path

from cardvault.core.config import get_settings
from cardvault.domain.errors import QuotaExceeded
from cardvault.repositories import build_host_store
from cardvault.services.degradation import WriteTier
from cardvault.services.image_compressor import to_data_uri
from cardvault.services.record_store import RecordStore


def read_photo(path: str) -> str:
    file = Path(path)
    if not file.exists():
        raise SystemExit(f"Photo '{path}' not found")
    mime = mimetypes.guess_type(file.name)[0] or "image/jpeg"
    if not mime.startswith("image/"):
        raise SystemExit(f"'{path}' is not an image")
    return to_data_uri(file.read_bytes(), mime)


def main() -> None:
    ap = argparse.ArgumentParser(description="Add a student record")
    ap.add_argument("--nom", required=True, help="Last name")
    ap.add_argument("--prenom", required=True, help="First name")
    ap.add_argument("--faculte", default="", help="Faculty")
    ap.add_argument("--promotion", default="", help="Class/promotion")
    ap.add_argument("--annee", default="", help="Academic year (ex.: 2024-2025)")
    ap.add_argument("--expiration", default="", help="Card expiry date")
    ap.add_argument("--institution", help="Institution id")
    ap.add_argument("--photo", help="Path to a photo file")
    args = ap.parse_args()

    settings = get_settings()
    store = RecordStore(build_host_store(settings), settings=settings)
    fields = {
        "nom": args.nom.strip(),
        "prenom": args.prenom.strip(),
        "faculte": args.faculte.strip(),
        "promotion": args.promotion.strip(),
        "annee_academique": args.annee.strip(),
        "date_expiration": args.expiration.strip(),
        "institution_id": (args.institution or "").strip() or None,
    }
    photo = read_photo(args.photo) if args.photo else None
    try:
        record = store.add(fields, photo=photo)
    except QuotaExceeded as exc:
        raise SystemExit(exc.message)

    info = store.storage_info()
    print("OK: student added")
    print(f"  ID: {record.id}")
    print(f"  Name: {record.prenom} {record.nom}")
    if record.photo:
        print(f"  Photo: {len(record.photo)} chars")
    if store.last_write_tier not in (None, WriteTier.RAW_WRITE):
        print(f"  Stored after: {store.last_write_tier.value}")
    print(f"  Storage: {info.percentage_used}% used ({info.status.value})")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
