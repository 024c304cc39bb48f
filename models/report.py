"""
Inspection report record.

The record persisted to the Record Store is the union of the scalar form
fields and the resolved image references. Its column set is declared here,
once, so a drift between record shape and store schema can be detected at
startup instead of at the first failed insert.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping

from core.exceptions import SchemaMismatchError

from .form_state import FIELD_NAMES, FrozenFormState
from .image_buckets import BUCKET_NAMES


REPORT_COLUMNS: FrozenSet[str] = frozenset(FIELD_NAMES) | frozenset(BUCKET_NAMES)

# Columns the store fills in itself
STORE_MANAGED_COLUMNS: FrozenSet[str] = frozenset({"id", "created_at"})


@dataclass(frozen=True)
class InspectionReport:
    """
    One inspection report row.

    fields: every declared scalar field (empty string means unset)
    images: resolved public URLs, only for buckets that had files
    """

    fields: Mapping[str, str]
    images: Mapping[str, List[str]] = field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        """Merge scalar and image fields into the insert payload."""
        row: Dict[str, Any] = dict(self.fields)
        for bucket, urls in self.images.items():
            if urls:
                row[bucket] = list(urls)
        return row


def build_report(form: FrozenFormState, uploaded: Mapping[str, List[str]]) -> InspectionReport:
    """
    Build the record for one submission attempt.

    Raises:
        SchemaMismatchError: If a key is not a declared report column
    """
    unknown = (set(form.values) | set(uploaded)) - REPORT_COLUMNS
    if unknown:
        raise SchemaMismatchError(
            f"Record keys have no declared column: {', '.join(sorted(unknown))}",
            columns=unknown,
        )

    images = {bucket: list(urls) for bucket, urls in uploaded.items() if urls}
    return InspectionReport(fields=form.to_dict(), images=images)


def check_schema(store_columns: Iterable[str], collection: str = "") -> None:
    """
    Verify that every declared report column exists in the store.

    Raises:
        SchemaMismatchError: Naming every declared column the store lacks
    """
    missing = REPORT_COLUMNS - set(store_columns)
    if missing:
        raise SchemaMismatchError(
            f"Record store is missing {len(missing)} report column(s): {', '.join(sorted(missing))}",
            collection=collection,
            columns=missing,
        )
