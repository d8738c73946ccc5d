"""Protocols for detection persistence and image object storage."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from productscan.types import DetectionResult, StoredRecord


class StorageError(Exception):
    """Raised when a record or object cannot be written or read."""


@runtime_checkable
class DetectionStore(Protocol):
    """Protocol for persisting detection results.

    Implementations: LocalDetectionStore.
    """

    def save(self, image_url: str, image_name: str, result: DetectionResult) -> StoredRecord:
        """Persist one detection.

        Args:
            image_url: Public URL of the uploaded image, or an inline data URI.
            image_name: Display / download file name.
            result: Parsed detection result.

        Returns:
            The stored record, with its id and creation time filled in.
        """
        ...

    def list_recent(self, limit: int) -> list[StoredRecord]:
        """Return up to ``limit`` records, newest first."""
        ...


@runtime_checkable
class ObjectStorage(Protocol):
    """Protocol for best-effort image uploads.

    Implementations: LocalObjectStorage.
    """

    def upload(self, data: bytes, path: str, content_type: str | None = None) -> str:
        """Store ``data`` at ``path`` and return its public URL.

        Raises:
            StorageError: The upload failed.
        """
        ...
