"""
Filesystem-backed Blob Store and Record Store.

Used for development (STORAGE_BACKEND=local) and tests. Behaves like the
remote stores at the interface boundary:
    - put() with overwrite=False fails if the object already exists
    - insert() rejects keys that are not declared columns
    - insert() appends one JSON line per record, never updates

Layout:
    <root>/blobs/<object_name>
    <root>/records/<collection>.jsonl
"""

from __future__ import annotations

import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Set

from logging_config import get_logger

from .exceptions import SchemaMismatchError, UploadError
from .stores import BlobStore, RecordStore, UploadOptions


# Module logger
logger = get_logger(__name__)


class LocalBlobStore(BlobStore):
    """Blob Store writing objects under a local directory."""

    def __init__(self, root: Path, public_base_url: str = "/media"):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def put(self, object_name: str, data: bytes, options: UploadOptions) -> None:
        path = (self._root / object_name).resolve()
        if self._root not in path.parents:
            raise UploadError(f"Invalid object name: {object_name}")

        path.parent.mkdir(parents=True, exist_ok=True)
        mode = "wb" if options.overwrite else "xb"
        try:
            with open(path, mode) as f:
                f.write(data)
        except FileExistsError:
            raise UploadError("The resource already exists", status_code=409)
        except OSError as e:
            raise UploadError(str(e))

        logger.debug(f"Stored {object_name} ({len(data)} bytes)")

    def resolve_public_url(self, object_name: str) -> str:
        return f"{self._public_base_url}/{object_name}"


class LocalRecordStore(RecordStore):
    """Record Store appending JSON lines per collection."""

    def __init__(self, root: Path, schemas: Mapping[str, Iterable[str]]):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._schemas: Dict[str, Set[str]] = {name: set(cols) for name, cols in schemas.items()}
        self._lock = threading.Lock()

    def insert(self, collection: str, record: Mapping[str, Any]) -> str:
        columns = self._columns(collection)

        for key in record:
            if key not in columns:
                raise SchemaMismatchError(
                    f"Could not find the '{key}' column of '{collection}' in the schema cache",
                    collection=collection,
                    columns=[key],
                    status_code=400,
                )

        row = dict(record)
        row["id"] = str(uuid.uuid4())
        row["created_at"] = datetime.now(timezone.utc).isoformat()

        with self._lock:
            with open(self._path(collection), "a", encoding="utf-8") as f:
                f.write(json.dumps(row, ensure_ascii=False) + "\n")

        logger.debug(f"Inserted row {row['id'][:8]} into {collection}")
        return row["id"]

    def describe_columns(self, collection: str) -> Set[str]:
        return set(self._columns(collection))

    def rows(self, collection: str) -> List[Dict[str, Any]]:
        """Read back every row of collection (oldest first)."""
        path = self._path(collection)
        if not path.exists():
            return []
        with self._lock:
            with open(path, "r", encoding="utf-8") as f:
                return [json.loads(line) for line in f if line.strip()]

    def _columns(self, collection: str) -> Set[str]:
        columns = self._schemas.get(collection)
        if columns is None:
            raise SchemaMismatchError(
                f"Collection '{collection}' is not exposed by the record store",
                collection=collection,
            )
        return columns

    def _path(self, collection: str) -> Path:
        return self._root / f"{collection}.jsonl"
