"""Tests for productscan.storage.local."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from productscan.storage.base import DetectionStore, ObjectStorage, StorageError
from productscan.storage.local import LocalDetectionStore, LocalObjectStorage


class TestLocalDetectionStore:
    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(LocalDetectionStore(tmp_path), DetectionStore)

    def test_save_and_get(self, tmp_path, detection_result):
        store = LocalDetectionStore(tmp_path)
        record = store.save("https://cdn/x.png", "x.png", detection_result)
        assert (tmp_path / "records" / f"{record.id}.json").is_file()
        loaded = store.get(record.id)
        assert loaded == record
        assert loaded.detection_result.cracks[0].severity == "moderate"

    def test_crack_detected_follows_defect_list(self, tmp_path, detection_result):
        store = LocalDetectionStore(tmp_path)
        clean = detection_result.model_copy(update={"cracks": [], "is_defective": False})
        assert not store.save("u", "clean.png", clean).crack_detected

    def test_list_recent_newest_first(self, tmp_path, detection_result):
        store = LocalDetectionStore(tmp_path)
        first = store.save("u1", "first.png", detection_result)
        second = store.save("u2", "second.png", detection_result)
        # Force distinct timestamps regardless of clock resolution
        older = first.model_copy(update={"created_at": datetime.now(timezone.utc) - timedelta(hours=1)})
        (tmp_path / "records" / f"{first.id}.json").write_text(older.model_dump_json())
        assert [r.image_name for r in store.list_recent(10)] == ["second.png", "first.png"]
        assert [r.id for r in store.list_recent(1)] == [second.id]

    def test_list_recent_empty(self, tmp_path):
        assert LocalDetectionStore(tmp_path).list_recent(20) == []

    def test_unreadable_record_skipped(self, tmp_path, detection_result):
        store = LocalDetectionStore(tmp_path)
        store.save("u", "ok.png", detection_result)
        (tmp_path / "records" / "broken.json").write_text("{")
        assert [r.image_name for r in store.list_recent(10)] == ["ok.png"]

    def test_get_missing(self, tmp_path):
        with pytest.raises(StorageError, match="No record"):
            LocalDetectionStore(tmp_path).get("nope")

    def test_get_rejects_path_ids(self, tmp_path, detection_result):
        store = LocalDetectionStore(tmp_path)
        store.save("u", "ok.png", detection_result)
        with pytest.raises(StorageError, match="No record"):
            store.get("../records/x")


class TestLocalObjectStorage:
    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(LocalObjectStorage(tmp_path), ObjectStorage)

    def test_upload_file_uri(self, tmp_path):
        url = LocalObjectStorage(tmp_path).upload(b"abc", "1_a.png", "image/png")
        assert (tmp_path / "window-images" / "1_a.png").read_bytes() == b"abc"
        assert url.startswith("file://")

    def test_upload_public_url(self, tmp_path):
        storage = LocalObjectStorage(tmp_path, bucket="imgs", public_base_url="https://cdn.example.com/")
        assert storage.upload(b"abc", "a/b.png") == "https://cdn.example.com/imgs/a/b.png"

    @pytest.mark.parametrize("path", ["../escape.png", "/abs.png", ""])
    def test_invalid_paths(self, tmp_path, path):
        with pytest.raises(StorageError):
            LocalObjectStorage(tmp_path).upload(b"abc", path)
