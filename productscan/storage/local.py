"""Filesystem-backed record store and object storage."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from pydantic import ValidationError

from productscan.storage.base import StorageError
from productscan.types import DetectionResult, StoredRecord

logger = logging.getLogger(__name__)


class LocalDetectionStore:
    """One JSON file per detection under ``<root>/records``.

    Satisfies the ``DetectionStore`` protocol.
    """

    def __init__(self, root: Path) -> None:
        self.records_dir = Path(root) / "records"

    def save(self, image_url: str, image_name: str, result: DetectionResult) -> StoredRecord:
        record = StoredRecord(
            id=uuid.uuid4().hex,
            image_url=image_url,
            image_name=image_name,
            detection_result=result,
            crack_detected=len(result.cracks) > 0,
            window_type=result.window_type,
            confidence_score=result.overall_confidence,
            created_at=datetime.now(timezone.utc),
        )
        path = self.records_dir / f"{record.id}.json"
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot write record {path}: {exc}") from exc
        logger.debug("Saved record %s (%s)", record.id, image_name)
        return record

    def get(self, record_id: str) -> StoredRecord:
        path = self.records_dir / f"{record_id}.json"
        if not record_id.isalnum() or not path.is_file():
            raise StorageError(f"No record with id {record_id!r}")
        return self._load(path)

    def list_recent(self, limit: int) -> list[StoredRecord]:
        if limit <= 0 or not self.records_dir.is_dir():
            return []
        records: list[StoredRecord] = []
        for path in self.records_dir.glob("*.json"):
            try:
                records.append(self._load(path))
            except StorageError as exc:
                logger.warning("Skipping unreadable record: %s", exc)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def _load(self, path: Path) -> StoredRecord:
        try:
            return StoredRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            raise StorageError(f"Cannot read record {path}: {exc}") from exc


class LocalObjectStorage:
    """Uploads land in ``<root>/<bucket>/<path>``.

    Public URLs are ``<public_base_url>/<bucket>/<path>`` when a base URL is
    configured, otherwise ``file://`` URIs.

    Satisfies the ``ObjectStorage`` protocol.
    """

    def __init__(self, root: Path, bucket: str = "window-images", public_base_url: str | None = None) -> None:
        self.bucket_dir = Path(root) / bucket
        self.bucket = bucket
        self.public_base_url = public_base_url

    def upload(self, data: bytes, path: str, content_type: str | None = None) -> str:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Invalid object path: {path!r}")

        destination = self.bucket_dir.joinpath(*relative.parts)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Upload of {path} failed: {exc}") from exc
        logger.debug("Uploaded %s (%s, %d bytes)", path, content_type or "unknown type", len(data))

        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{self.bucket}/{relative.as_posix()}"
        return destination.resolve().as_uri()
