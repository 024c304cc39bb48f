"""
Services layer for the roof inspection service.

This module contains the business logic services:
- ImageUploadCoordinator: Uploads image buckets to the Blob Store
- SubmissionOrchestrator: One end-to-end submission attempt
- SubmissionService: Background thread per submission attempt
- SessionRegistry: Server-side form sessions

Thread Model:
    Main Thread (Flask)
    └── Submission threads (one per attempt)
        └── Upload pool threads (per bucket, joined before the insert)
"""

from .upload_coordinator import ImageUploadCoordinator
from .submission_service import SubmissionOrchestrator, SubmissionService
from .session_registry import SessionRegistry

__all__ = [
    "ImageUploadCoordinator",
    "SubmissionOrchestrator",
    "SubmissionService",
    "SessionRegistry",
]
