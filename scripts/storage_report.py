#!/usr/bin/env python3
"""
Inspect and reclaim space in the configured host store.

Usage:
  python scripts/storage_report.py                 # usage report
  python scripts/storage_report.py --optimize      # recompress every photo
  python scripts/storage_report.py --evict 5       # keep photos of the 5 newest students only
  python scripts/storage_report.py --clear --yes   # drop every student and temp key
"""
from __future__ import annotations

import argparse
import sys

from cardvault.core.config import get_settings
from cardvault.domain.errors import ClearIncomplete
from cardvault.repositories import build_host_store
from cardvault.services.record_store import RecordStore


def print_usage(store: RecordStore) -> None:
    info = store.storage_info()
    print(f"Students: {info.record_count}")
    print(f"Used: {info.used_kb} KB / {round(store.accountant.capacity / 1024)} KB ({info.percentage_used}%)")
    print(f"Available: {info.available_kb} KB")
    print(f"Status: {info.status.value.upper()}")


def main() -> None:
    ap = argparse.ArgumentParser(description="Storage report for the student collection")
    ap.add_argument("--optimize", action="store_true", help="Recompress photos with the optimize profile")
    ap.add_argument("--evict", type=int, metavar="N", help="Strip photos from all but the N newest students")
    ap.add_argument("--clear", action="store_true", help="Remove every student and temporary key")
    ap.add_argument("--yes", action="store_true", help="Confirm --clear")
    args = ap.parse_args()

    settings = get_settings()
    store = RecordStore(build_host_store(settings), settings=settings)

    if args.clear:
        if not args.yes:
            raise SystemExit("Refusing to clear without --yes")
        try:
            removed = store.clear_all()
        except ClearIncomplete as exc:
            raise SystemExit(f"Clear incomplete: {exc}")
        print(f"OK: {removed} keys removed")
    if args.optimize:
        result = store.optimize_storage()
        if result.freed_size > 0:
            print(f"OK: {result.freed_kb} KB freed")
        else:
            print("Storage already optimized")
    if args.evict is not None:
        if args.evict < 0:
            raise SystemExit("--evict must be >= 0")
        result = store.evict_photos_keeping_last(args.evict)
        print(f"OK: {result.removed_count} photos removed")
    print_usage(store)


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
