"""
Store interfaces consumed by the submission pipeline.

Two external collaborators:
    BlobStore   - name-addressed binary object storage with public URLs
    RecordStore - schema-validated row insertion into a named collection

Concrete implementations live in core.supabase_client (production) and
core.local_store (development and tests). Implementations raise the
StoreError subclasses from core.exceptions and never return partial results.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Set


@dataclass(frozen=True)
class UploadOptions:
    """Options passed with every Blob Store put."""

    cache_control: str = "3600"
    """Cache lifetime in seconds, sent as max-age."""

    overwrite: bool = False
    """Must stay False so prior submissions' objects are never clobbered."""

    content_type: str = "application/octet-stream"


class BlobStore(ABC):
    """Name-addressed binary object storage."""

    @abstractmethod
    def put(self, object_name: str, data: bytes, options: UploadOptions) -> None:
        """
        Store bytes under object_name.

        Raises:
            UploadError: If the store rejects the object
            TransportError: If the store cannot be reached
        """

    @abstractmethod
    def resolve_public_url(self, object_name: str) -> str:
        """Return the publicly resolvable location for object_name."""


class RecordStore(ABC):
    """Schema-validated tabular storage supporting row insertion."""

    @abstractmethod
    def insert(self, collection: str, record: Mapping[str, Any]) -> str:
        """
        Insert one row and return its identifier.

        Raises:
            SchemaMismatchError: If a record key has no matching column
            RecordInsertError: If the row is rejected for another reason
            TransportError: If the store cannot be reached
        """

    @abstractmethod
    def describe_columns(self, collection: str) -> Set[str]:
        """Return the declared column names of collection."""
