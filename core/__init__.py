"""
Core module for the roof inspection service.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- stores: Blob Store / Record Store interfaces
- supabase_client: Supabase Storage and PostgREST adapters
- local_store: Filesystem adapters for development and tests
- store_factory: Builds adapters from config (import directly)
"""

from .exceptions import (
    InspectionServiceError,
    StoreError,
    UploadError,
    SchemaMismatchError,
    RecordInsertError,
    TransportError,
    StoreTimeoutError,
    PreconditionError,
    SubmissionCancelledError,
    InvalidFieldError,
)
from .stores import BlobStore, RecordStore, UploadOptions
from .local_store import LocalBlobStore, LocalRecordStore
from .supabase_client import SupabaseStorage, SupabaseTable

__all__ = [
    "InspectionServiceError",
    "StoreError",
    "UploadError",
    "SchemaMismatchError",
    "RecordInsertError",
    "TransportError",
    "StoreTimeoutError",
    "PreconditionError",
    "SubmissionCancelledError",
    "InvalidFieldError",
    "BlobStore",
    "RecordStore",
    "UploadOptions",
    "LocalBlobStore",
    "LocalRecordStore",
    "SupabaseStorage",
    "SupabaseTable",
]
