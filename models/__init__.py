"""
Data models for the roof inspection service.

This module contains dataclasses for:
- FormState: Scalar survey answers (FrozenFormState for submission)
- ImageBucketSet: Selected photos per checklist topic (FrozenImageBuckets)
- InspectionReport: The row written to the Record Store
- SubmissionResult: Outcome of one submission attempt
- InspectionSession: Explicit owner of one form and its state machine

Frozen snapshots are taken at submission time and handed to the
submission thread, so user edits never race with an in-flight attempt.
"""

from .form_state import FIELDS, FIELD_NAMES, FORM_SECTIONS, FieldDefinition, FormState, FrozenFormState
from .image_buckets import BUCKET_NAMES, IMAGE_BUCKETS, FrozenImageBuckets, ImageBucketSet, ImageFile
from .report import REPORT_COLUMNS, InspectionReport, build_report, check_schema
from .submission import SubmissionResult, SubmissionState
from .session import InspectionSession, SubmissionSnapshot

__all__ = [
    # Form models
    "FIELDS",
    "FIELD_NAMES",
    "FORM_SECTIONS",
    "FieldDefinition",
    "FormState",
    "FrozenFormState",
    # Image models
    "BUCKET_NAMES",
    "IMAGE_BUCKETS",
    "FrozenImageBuckets",
    "ImageBucketSet",
    "ImageFile",
    # Report models
    "REPORT_COLUMNS",
    "InspectionReport",
    "build_report",
    "check_schema",
    # Submission models
    "SubmissionResult",
    "SubmissionState",
    "InspectionSession",
    "SubmissionSnapshot",
]
