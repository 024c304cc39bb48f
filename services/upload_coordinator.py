"""
Image upload coordinator.

Turns a frozen Image Bucket Set into the Uploaded Reference Set by putting
every file into the Blob Store and resolving its public URL.

Concurrency:
    - Buckets are processed one after another in declared order
    - Within a bucket every file is uploaded concurrently on a thread pool
    - The bucket's futures are joined with an all-or-nothing barrier:
      the first failure cancels uploads that have not started and aborts
      the whole attempt
    - Results are written by position, so the reference list keeps the
      order the files were selected in

Orphans:
    Objects uploaded before a failure stay in the Blob Store and are not
    deleted. Their URLs travel on the raised error so the caller can log them.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from werkzeug.utils import secure_filename

from core.exceptions import SubmissionCancelledError, UploadError
from core.stores import BlobStore, UploadOptions
from logging_config import get_logger
from models.image_buckets import FrozenImageBuckets, ImageFile


# Module logger
logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 4


def submission_token(submitted_at: datetime) -> str:
    """Distinguishing token for one attempt: epoch milliseconds."""
    return str(int(submitted_at.timestamp() * 1000))


def object_name_for(bucket: str, token: str, index: int, filename: str) -> str:
    """
    Storage name for one file.

    bucket + submission token + position + sanitized original name, so
    names never collide across buckets, across attempts, or between two
    files with the same name in one bucket.
    """
    safe_name = secure_filename(filename) or "image"
    return f"{bucket}/{token}_{index}_{safe_name}"


class ImageUploadCoordinator:
    """
    Uploads all image buckets of one submission attempt.

    Attributes:
        blob_store: Destination store
        max_workers: Upload threads per bucket
        cache_control: Cache lifetime sent with every object
    """

    def __init__(
        self,
        blob_store: BlobStore,
        max_workers: int = DEFAULT_MAX_WORKERS,
        cache_control: str = "3600"
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.blob_store = blob_store
        self.max_workers = max_workers
        self.cache_control = cache_control

    def upload_all(
        self,
        images: FrozenImageBuckets,
        submitted_at: datetime,
        cancel_event: Optional[threading.Event] = None,
        submission_logger: Optional[logging.Logger] = None
    ) -> Dict[str, List[str]]:
        """
        Upload every non-empty bucket.

        Args:
            images: Frozen bucket snapshot
            submitted_at: Attempt start time (source of the name token)
            cancel_event: Set to abort before the next upload starts
            submission_logger: Logger of the calling attempt

        Returns:
            Bucket name -> public URLs, only for buckets that had files

        Raises:
            UploadError: If any single file fails; nothing partial is returned,
                the objects stored so far are on the error's uploaded attribute
            SubmissionCancelledError: If cancel_event was set (same uploaded attribute)
        """
        log = submission_logger or logger
        token = submission_token(submitted_at)
        uploaded: Dict[str, List[str]] = {}

        for bucket, files in images.non_empty():
            urls: List[Optional[str]] = [None] * len(files)
            try:
                _check_cancelled(cancel_event)
                log.info(f"Uploading {len(files)} file(s) to {bucket}")
                self._upload_bucket(bucket, files, token, urls, cancel_event, log)
            except (UploadError, SubmissionCancelledError) as e:
                stored = [url for url in urls if url is not None]
                if stored:
                    uploaded[bucket] = stored
                e.uploaded = uploaded
                raise
            uploaded[bucket] = list(urls)

        log.info(f"Uploaded {sum(len(u) for u in uploaded.values())} file(s) across {len(uploaded)} bucket(s)")
        return uploaded

    def _upload_bucket(
        self,
        bucket: str,
        files: Sequence[ImageFile],
        token: str,
        urls: List[Optional[str]],
        cancel_event: Optional[threading.Event],
        log: logging.Logger
    ) -> None:
        failure: Optional[BaseException] = None
        workers = min(self.max_workers, len(files))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"Upload-{bucket}") as executor:
            futures = [
                executor.submit(self._upload_one, bucket, index, image, token, urls, cancel_event, log)
                for index, image in enumerate(files)
            ]
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)

            # Positional order, not completion order
            for future in futures:
                if future in done and future.exception() is not None:
                    failure = future.exception()
                    for pending in not_done:
                        pending.cancel()
                    break

        # Raised after the pool has drained, so urls holds every finished upload
        if failure is not None:
            raise failure

    def _upload_one(
        self,
        bucket: str,
        index: int,
        image: ImageFile,
        token: str,
        urls: List[Optional[str]],
        cancel_event: Optional[threading.Event],
        log: logging.Logger
    ) -> None:
        _check_cancelled(cancel_event)

        object_name = object_name_for(bucket, token, index, image.filename)
        options = UploadOptions(
            cache_control=self.cache_control,
            overwrite=False,
            content_type=image.content_type,
        )

        try:
            self.blob_store.put(object_name, image.data, options)
            url = self.blob_store.resolve_public_url(object_name)
        except Exception as e:
            log.error(f"Upload of {image.filename} to {bucket} failed: {e}")
            message = getattr(e, "message", None) or str(e)
            raise UploadError(message, bucket=bucket, filename=image.filename, cause=e) from e

        # Each worker owns exactly one slot
        urls[index] = url
        log.debug(f"Uploaded {image.filename} as {object_name}")


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SubmissionCancelledError()
