"""
Builds the Blob Store and Record Store from application config.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Tuple

from logging_config import get_logger
from models.report import REPORT_COLUMNS, STORE_MANAGED_COLUMNS

from .local_store import LocalBlobStore, LocalRecordStore
from .stores import BlobStore, RecordStore
from .supabase_client import SupabaseStorage, SupabaseTable


# Module logger
logger = get_logger(__name__)

BACKENDS = ("supabase", "local")


def build_stores(config: Mapping[str, Any]) -> Tuple[BlobStore, RecordStore]:
    """
    Create the store adapters selected by STORAGE_BACKEND.

    Raises:
        ValueError: On an unknown backend or missing Supabase settings
    """
    backend = config.get("STORAGE_BACKEND", "supabase")

    if backend == "supabase":
        timeout = float(config.get("STORE_TIMEOUT_SECONDS", 30.0))
        blob_store = SupabaseStorage(
            config.get("SUPABASE_URL", ""),
            config.get("SUPABASE_KEY", ""),
            bucket=config["STORAGE_BUCKET"],
            timeout_seconds=timeout,
        )
        record_store = SupabaseTable(
            config.get("SUPABASE_URL", ""),
            config.get("SUPABASE_KEY", ""),
            timeout_seconds=timeout,
        )
        logger.info(f"Using Supabase stores at {blob_store.base_url}")
        return blob_store, record_store

    if backend == "local":
        root = Path(config["LOCAL_STORAGE_PATH"])
        blob_store = LocalBlobStore(root / "blobs", config.get("LOCAL_PUBLIC_URL", "/media"))
        record_store = LocalRecordStore(
            root / "records",
            {config["REPORTS_TABLE"]: REPORT_COLUMNS | STORE_MANAGED_COLUMNS},
        )
        logger.info(f"Using local stores under {root}")
        return blob_store, record_store

    raise ValueError(f"Unknown STORAGE_BACKEND '{backend}', expected one of {BACKENDS}")
