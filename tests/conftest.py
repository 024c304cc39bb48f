"""
Shared fixtures and in-memory store doubles.
"""

import threading
import time
from datetime import datetime

import pytest

from core.exceptions import RecordInsertError, SchemaMismatchError, UploadError
from core.stores import BlobStore, RecordStore
from models.image_buckets import ImageFile
from models.report import REPORT_COLUMNS, STORE_MANAGED_COLUMNS
from models.session import InspectionSession


FIXED_NOW = datetime(2024, 6, 10, 9, 30, 15)


class FakeBlobStore(BlobStore):
    """
    In-memory Blob Store.

    delays: object-name substring -> seconds to sleep before storing
    fail_on: object-name substring -> error message to raise
    """

    def __init__(self, delays=None, fail_on=None):
        self.objects = {}
        self.options = {}
        self.delays = delays or {}
        self.fail_on = fail_on or {}
        self.put_calls = []
        self.resolve_calls = []
        self._lock = threading.Lock()

    def put(self, object_name, data, options):
        with self._lock:
            self.put_calls.append(object_name)

        for fragment, seconds in self.delays.items():
            if fragment in object_name:
                time.sleep(seconds)

        for fragment, message in self.fail_on.items():
            if fragment in object_name:
                raise UploadError(message, status_code=400)

        with self._lock:
            if object_name in self.objects and not options.overwrite:
                raise UploadError("The resource already exists", status_code=409)
            self.objects[object_name] = data
            self.options[object_name] = options

    def resolve_public_url(self, object_name):
        with self._lock:
            self.resolve_calls.append(object_name)
        return f"https://cdn.test/{object_name}"


class FakeRecordStore(RecordStore):
    """In-memory Record Store enforcing a column set."""

    def __init__(self, columns=None, error=None):
        self.columns = set(columns if columns is not None else REPORT_COLUMNS | STORE_MANAGED_COLUMNS)
        self.error = error
        self.rows = []

    def insert(self, collection, record):
        if self.error is not None:
            raise self.error
        for key in record:
            if key not in self.columns:
                raise SchemaMismatchError(
                    f"Could not find the '{key}' column of '{collection}' in the schema cache",
                    collection=collection,
                    columns=[key],
                    status_code=400,
                )
        self.rows.append(dict(record))
        return f"row-{len(self.rows)}"

    def describe_columns(self, collection):
        return set(self.columns)


def make_image(name, data=b"jpeg-bytes"):
    return ImageFile(filename=name, data=data, content_type="image/jpeg")


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def record_store():
    return FakeRecordStore()


@pytest.fixture
def session():
    """A fresh form session with a fixed clock."""
    return InspectionSession(clock=lambda: FIXED_NOW)


@pytest.fixture
def insert_rejecting_store():
    return FakeRecordStore(error=RecordInsertError("new row violates check constraint", status_code=400, code="23514"))
