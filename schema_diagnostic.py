"""
Schema Diagnostic Script
========================

This standalone script compares the declared inspection report columns
with the columns the configured Record Store actually exposes. Run it
after changing the form or the reports table, before deploying.

Usage:
    1. Ensure SUPABASE_URL / SUPABASE_KEY (or STORAGE_BACKEND=local) are set
       in your .env file
    2. Run from the project directory:

       python schema_diagnostic.py [--json]

What this script does:
    - Builds the Record Store from config (same factory as the app)
    - Reads the reports table columns (PostgREST OpenAPI document)
    - Lists declared columns the store lacks (inserts will fail)
    - Lists store columns nothing in the form writes (harmless)

Exit status:
    0 - schema matches
    1 - store unreachable or declared columns missing
"""

import argparse
import json
import sys
from datetime import datetime

from config import Config
from core.exceptions import StoreError
from core.store_factory import build_stores
from models.report import REPORT_COLUMNS, STORE_MANAGED_COLUMNS


def _config_dict() -> dict:
    return {key: getattr(Config, key) for key in dir(Config) if key.isupper()}


def diagnose(record_store, collection: str) -> dict:
    """
    Compare declared and live columns.

    Raises:
        StoreError: If the store cannot be read
    """
    live = record_store.describe_columns(collection)
    return {
        "collection": collection,
        "missing": sorted(REPORT_COLUMNS - live),
        "unused": sorted(live - REPORT_COLUMNS - STORE_MANAGED_COLUMNS),
        "declared": len(REPORT_COLUMNS),
        "live": len(live),
    }


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Compare report columns with the record store schema")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    args = parser.parse_args(argv)

    config = _config_dict()
    collection = config["REPORTS_TABLE"]

    try:
        _, record_store = build_stores(config)
        report = diagnose(record_store, collection)
    except (StoreError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    if args.json:
        print(json.dumps(report, indent=2))
        return 1 if report["missing"] else 0

    print("=" * 60)
    print("SCHEMA DIAGNOSTIC")
    print("=" * 60)
    print(f"Timestamp:  {datetime.now().isoformat()}")
    print(f"Backend:    {config['STORAGE_BACKEND']}")
    print(f"Collection: {collection}")
    print(f"Declared:   {report['declared']} columns")
    print(f"Live:       {report['live']} columns")
    print()

    if report["missing"]:
        print("MISSING (inserts will fail):")
        for column in report["missing"]:
            print(f"  - {column}")
    else:
        print("SUCCESS - every declared column exists")

    if report["unused"]:
        print()
        print("Unused store columns:")
        for column in report["unused"]:
            print(f"  - {column}")

    print("=" * 60)
    return 1 if report["missing"] else 0


if __name__ == "__main__":
    sys.exit(main())
