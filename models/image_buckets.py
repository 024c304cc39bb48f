"""
Image bucket models.

Photographs are grouped into nine named buckets, one per checklist topic.
Files are held in memory as opaque bytes until the submission uploads them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple

from core.exceptions import InvalidFieldError


# Bucket name -> human-readable label. Names are record store column names.
IMAGE_BUCKETS: Dict[str, str] = {
    "overviewPhoto": "Roof overview photos",
    "brokenTilesPhoto": "Broken tile photos",
    "defectPhoto": "Defect photos",
    "ridgeCappingPhoto": "Ridge capping photos",
    "valleyPhoto": "Valley photos",
    "flashingPhoto": "Flashing photos",
    "guttersPhoto": "Gutter and downpipe photos",
    "penetrationsPhoto": "Penetration photos",
    "roofSpacePhoto": "Roof space photos",
}

BUCKET_NAMES: Tuple[str, ...] = tuple(IMAGE_BUCKETS)


@dataclass(frozen=True)
class ImageFile:
    """A locally selected image, not yet uploaded."""

    filename: str
    """Original filename as selected by the user."""

    data: bytes = field(repr=False)
    """File content."""

    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)

    def to_dict(self) -> Dict[str, object]:
        return {"filename": self.filename, "size": self.size, "content_type": self.content_type}


def _check_bucket(bucket: str) -> None:
    if bucket not in IMAGE_BUCKETS:
        raise InvalidFieldError(bucket, f"Unknown image bucket: {bucket}")


@dataclass
class ImageBucketSet:
    """
    Ordered image files per bucket for one form session.

    Invariant: keys are exactly BUCKET_NAMES; lists may be empty.
    """

    buckets: Dict[str, List[ImageFile]] = field(
        default_factory=lambda: {name: [] for name in BUCKET_NAMES}
    )

    def add_images(self, bucket: str, files: Iterable[ImageFile]) -> int:
        """
        Append files to a bucket.

        Returns:
            New number of files in the bucket
        """
        _check_bucket(bucket)
        self.buckets[bucket].extend(files)
        return len(self.buckets[bucket])

    def remove_image(self, bucket: str, index: int) -> ImageFile:
        """
        Remove and return the file at index.

        Raises:
            InvalidFieldError: If bucket is unknown
            IndexError: If index is out of range
        """
        _check_bucket(bucket)
        files = self.buckets[bucket]
        if not 0 <= index < len(files):
            raise IndexError(f"No image at position {index} in {bucket}")
        return files.pop(index)

    def files(self, bucket: str) -> List[ImageFile]:
        _check_bucket(bucket)
        return list(self.buckets[bucket])

    @property
    def total_files(self) -> int:
        return sum(len(files) for files in self.buckets.values())

    def counts(self) -> Dict[str, int]:
        return {name: len(files) for name, files in self.buckets.items()}

    def freeze(self) -> "FrozenImageBuckets":
        """Create an immutable snapshot for the submission attempt."""
        return FrozenImageBuckets(
            buckets=MappingProxyType({name: tuple(files) for name, files in self.buckets.items()})
        )


@dataclass(frozen=True)
class FrozenImageBuckets:
    """Immutable snapshot of an ImageBucketSet."""

    buckets: Mapping[str, Tuple[ImageFile, ...]]

    def non_empty(self) -> List[Tuple[str, Tuple[ImageFile, ...]]]:
        """Buckets with at least one file, in declared order."""
        return [(name, self.buckets[name]) for name in BUCKET_NAMES if self.buckets.get(name)]

    @property
    def total_files(self) -> int:
        return sum(len(files) for files in self.buckets.values())
