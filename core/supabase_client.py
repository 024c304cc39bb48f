"""
Supabase Blob Store and Record Store adapters.

Talks to the Supabase Storage REST API and to PostgREST over HTTP using a
requests.Session. Each adapter owns its session; both are safe to share
between upload worker threads (requests.Session is used for independent
requests only, no per-request state is kept on the adapter).

Error mapping:
    requests.Timeout            -> StoreTimeoutError
    requests.RequestException   -> TransportError
    HTTP 401 / 403              -> TransportError
    Storage HTTP error          -> UploadError
    PostgREST PGRST204 / 42703  -> SchemaMismatchError
    other PostgREST rejection   -> RecordInsertError

Usage:
    storage = SupabaseStorage(url, key, bucket="roof-inspection-images")
    storage.put("defectPhoto/1718000000000_0_a.jpg", data, UploadOptions())
    url = storage.resolve_public_url("defectPhoto/1718000000000_0_a.jpg")

    table = SupabaseTable(url, key)
    record_id = table.insert("roof_inspections", {"clientName": "A. Smith"})
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Set
from urllib.parse import quote

import requests

from logging_config import get_logger

from .exceptions import (
    RecordInsertError,
    SchemaMismatchError,
    StoreTimeoutError,
    TransportError,
    UploadError,
)
from .stores import BlobStore, RecordStore, UploadOptions


# Module logger
logger = get_logger(__name__)

# PostgREST codes meaning "record key has no column"
SCHEMA_MISMATCH_CODES = {"PGRST204", "42703"}
AUTH_STATUS_CODES = {401, 403}

_COLUMN_PATTERN = re.compile(r"""(?:the '|column ")([^'"]+)['"]""")


class _SupabaseHTTP:
    """Shared session, headers and transport-error mapping."""

    store_name = ""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        if not base_url:
            raise ValueError("base_url is required - set SUPABASE_URL")
        if not api_key:
            raise ValueError("api_key is required - set SUPABASE_KEY")

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        })

    @property
    def base_url(self) -> str:
        return self._base_url

    def _request(self, method: str, path: str, operation: str, **kwargs) -> requests.Response:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.Timeout:
            logger.error(f"{self.store_name} {operation} timed out after {self._timeout}s")
            raise StoreTimeoutError(operation, self._timeout, store=self.store_name)
        except requests.RequestException as e:
            logger.error(f"{self.store_name} {operation} failed: {e}")
            raise TransportError(str(e), store=self.store_name)

        if response.status_code in AUTH_STATUS_CODES:
            message = _error_message(response)
            logger.error(f"{self.store_name} {operation} rejected credentials: {message}")
            raise TransportError(message, store=self.store_name, status_code=response.status_code)

        return response

    def close(self) -> None:
        self._session.close()


class SupabaseStorage(_SupabaseHTTP, BlobStore):
    """Blob Store backed by a Supabase Storage bucket."""

    store_name = "blob"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str,
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        super().__init__(base_url, api_key, timeout_seconds, session)
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def put(self, object_name: str, data: bytes, options: UploadOptions) -> None:
        headers = {
            "Content-Type": options.content_type,
            "cache-control": f"max-age={options.cache_control}",
            "x-upsert": "true" if options.overwrite else "false",
        }
        response = self._request(
            "POST",
            f"/storage/v1/object/{self._bucket}/{quote(object_name)}",
            "upload",
            data=data,
            headers=headers,
        )

        if not response.ok:
            message = _error_message(response)
            logger.warning(f"Upload of {object_name} rejected ({response.status_code}): {message}")
            raise UploadError(message, status_code=response.status_code)

        logger.debug(f"Stored {object_name} ({len(data)} bytes)")

    def resolve_public_url(self, object_name: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{quote(object_name)}"


class SupabaseTable(_SupabaseHTTP, RecordStore):
    """Record Store backed by PostgREST tables."""

    store_name = "record"

    def insert(self, collection: str, record: Mapping[str, Any]) -> str:
        response = self._request(
            "POST",
            f"/rest/v1/{collection}",
            "insert",
            json=dict(record),
            headers={"Prefer": "return=representation"},
        )

        if not response.ok:
            payload = _error_payload(response)
            message = payload.get("message") or response.text or f"HTTP {response.status_code}"
            code = str(payload.get("code") or "")

            if code in SCHEMA_MISMATCH_CODES:
                columns = _COLUMN_PATTERN.findall(message)
                logger.error(f"Schema mismatch inserting into {collection}: {message}")
                raise SchemaMismatchError(
                    message,
                    collection=collection,
                    columns=columns,
                    status_code=response.status_code,
                )

            logger.error(f"Insert into {collection} rejected ({response.status_code}, {code}): {message}")
            raise RecordInsertError(message, status_code=response.status_code, code=code)

        rows = _json_or_none(response)
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return str(rows[0].get("id", ""))
        return ""

    def describe_columns(self, collection: str) -> Set[str]:
        """Read the table definition from the PostgREST OpenAPI document."""
        response = self._request("GET", "/rest/v1/", "describe")

        if not response.ok:
            raise RecordInsertError(_error_message(response), status_code=response.status_code)

        document = _json_or_none(response) or {}
        definition = document.get("definitions", {}).get(collection)
        if definition is None:
            raise SchemaMismatchError(
                f"Collection '{collection}' is not exposed by the record store",
                collection=collection,
            )

        return set(definition.get("properties", {}).keys())


def _json_or_none(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_payload(response: requests.Response) -> Dict[str, Any]:
    payload = _json_or_none(response)
    return payload if isinstance(payload, dict) else {}


def _error_message(response: requests.Response) -> str:
    """Extract the store's own failure detail without rewording it."""
    payload = _error_payload(response)
    for key in ("message", "error_description", "error", "msg"):
        if payload.get(key):
            return str(payload[key])
    return response.text or f"HTTP {response.status_code}"
