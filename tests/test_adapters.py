"""Tests for productscan.acquire.adapters."""

from __future__ import annotations

import pytest

from productscan.acquire.adapters import BatchAdapter, FileAdapter, SingleUrlAdapter
from productscan.acquire.base import ImageAcquirer
from productscan.acquire.errors import (
    AcquisitionError,
    FetchError,
    InvalidFileError,
    MalformedBatchInput,
    NotAnImageError,
)
from productscan.acquire.fetcher import ImageFetcher
from productscan.types import BatchItemStatus, LocalFile, Provider


@pytest.fixture
def fetcher_for(make_session):
    def _build(routes=None):
        return ImageFetcher(session=make_session(routes))
    return _build


class TestProtocol:
    def test_adapters_satisfy_protocol(self, fetcher_for):
        fetcher = fetcher_for()
        for adapter in (FileAdapter(), SingleUrlAdapter(fetcher), BatchAdapter(fetcher)):
            assert isinstance(adapter, ImageAcquirer)


class TestFileAdapter:
    def test_image_file_accepted(self, png_bytes):
        artifact = FileAdapter().acquire(LocalFile("door.png", png_bytes, "image/png"))
        assert artifact.name == "door.png"
        assert artifact.mime_type == "image/png"
        assert artifact.data == png_bytes

    def test_non_image_rejected(self):
        with pytest.raises(InvalidFileError) as exc_info:
            FileAdapter().acquire(LocalFile("notes.pdf", b"%PDF-1.4", "application/pdf"))
        assert isinstance(exc_info.value, NotAnImageError)
        assert "notes.pdf" in exc_info.value.message

    def test_read_path_declares_type_from_extension(self, tmp_path, png_bytes):
        path = tmp_path / "frame.png"
        path.write_bytes(png_bytes)
        local = FileAdapter().read_path(path)
        assert local.mime_type == "image/png"
        assert local.data == png_bytes

    def test_read_path_unknown_type(self, tmp_path):
        path = tmp_path / "blob.unknownext"
        path.write_bytes(b"\x00\x01")
        local = FileAdapter().read_path(path)
        with pytest.raises(InvalidFileError):
            FileAdapter().acquire(local)


class TestSingleUrlAdapter:
    def test_fetch_leaves_input_until_reset(self, fetcher_for, image_ok, png_bytes):
        adapter = SingleUrlAdapter(fetcher_for({"https://example.com/a.png": image_ok(png_bytes)}))
        adapter.url_text = "https://example.com/a.png"
        assert adapter.fetch("https://example.com/a.png").data == png_bytes
        assert adapter.url_text == "https://example.com/a.png"
        adapter.reset()
        assert adapter.url_text == ""

    def test_failure_adds_remediation(self, fetcher_for):
        adapter = SingleUrlAdapter(fetcher_for())
        with pytest.raises(FetchError) as exc_info:
            adapter.fetch("https://drive.google.com/file/d/XYZ/view")
        report = exc_info.value.report()
        assert "404" in report.message
        assert "Google Drive" in report.remediation

    def test_generic_failure_has_no_remediation(self, fetcher_for):
        adapter = SingleUrlAdapter(fetcher_for())
        with pytest.raises(FetchError) as exc_info:
            adapter.fetch("https://example.com/a.png")
        assert exc_info.value.remediation is None

    def test_padded_input_trimmed(self, fetcher_for, image_ok, png_bytes):
        adapter = SingleUrlAdapter(fetcher_for({"https://example.com/a.png": image_ok(png_bytes)}))
        assert adapter.fetch("  https://example.com/a.png \n").data == png_bytes
        assert adapter.fetcher.session.urls == ["https://example.com/a.png"]

    def test_index_numbers_name(self, fetcher_for, image_ok, png_bytes):
        adapter = SingleUrlAdapter(fetcher_for({"https://example.com/a.png": image_ok(png_bytes)}))
        assert adapter.fetch("https://example.com/a.png", index=3).name == "image_3.png"

    def test_blank_input_rejected(self, fetcher_for):
        with pytest.raises(AcquisitionError):
            SingleUrlAdapter(fetcher_for()).fetch("   ")


class TestBatchAdapter:
    def test_load_splits_and_normalizes(self, fetcher_for):
        session = BatchAdapter(fetcher_for()).load("a\n\nb\n  \nc")
        assert [i.link.original_url for i in session.items] == ["a", "b", "c"]
        assert all(i.status == BatchItemStatus.idle for i in session.items)

    def test_items_numbered_from_one(self, fetcher_for):
        session = BatchAdapter(fetcher_for()).load(
            "https://drive.google.com/file/d/A/view\nhttps://www.dropbox.com/s/b/c.jpg?dl=0"
        )
        assert session.item(0).link.suggested_name == "drive_image_1.jpg"
        assert session.item(1).link.suggested_name == "dropbox_image_2.jpg"
        assert session.item(1).link.provider == Provider.dropbox

    @pytest.mark.parametrize("text", ["", "   \n  ", "\n\n"])
    def test_empty_input_rejected(self, fetcher_for, text):
        adapter = BatchAdapter(fetcher_for())
        with pytest.raises(MalformedBatchInput):
            adapter.load(text)
        assert adapter.session is None

    def test_fetch_success_marks_ready(self, fetcher_for, image_ok, png_bytes):
        adapter = BatchAdapter(fetcher_for({"https://example.com/b.png": image_ok(png_bytes)}))
        adapter.load("https://example.com/a.png\nhttps://example.com/b.png")
        artifact = adapter.fetch_item(adapter.start(adapter.session, 1))
        assert artifact.name == "image_2.png"
        assert adapter.session.item(1).status == BatchItemStatus.ready
        assert adapter.session.item(0).status == BatchItemStatus.idle

    def test_fetch_failure_scoped_to_item(self, fetcher_for, html_page):
        adapter = BatchAdapter(fetcher_for({"https://www.dropbox.com/s/x/y.jpg?dl=1": html_page()}))
        adapter.load("https://www.dropbox.com/s/x/y.jpg?dl=0\nhttps://example.com/ok.png")
        with pytest.raises(NotAnImageError):
            adapter.fetch_item(adapter.start(adapter.session, 0))
        failed = adapter.session.item(0)
        assert failed.status == BatchItemStatus.failed
        assert "For Dropbox images" in failed.error_message
        assert adapter.session.item(1).status == BatchItemStatus.idle
        assert adapter.session.failed == [failed]

    def test_retry_clears_error(self, fetcher_for, image_ok, png_bytes):
        routes: dict = {}
        adapter = BatchAdapter(fetcher_for(routes))
        adapter.load("https://example.com/a.png")
        with pytest.raises(FetchError):
            adapter.fetch_item(adapter.start(adapter.session, 0))
        adapter.fetcher.session.routes["https://example.com/a.png"] = image_ok(png_bytes)
        item = adapter.start(adapter.session, 0)
        assert item.status == BatchItemStatus.loading
        assert item.error_message is None
        adapter.fetch_item(item)
        assert item.status == BatchItemStatus.ready

    def test_reload_closes_previous_session(self, fetcher_for):
        adapter = BatchAdapter(fetcher_for())
        first = adapter.load("a")
        adapter.load("b")
        assert first.closed

    @pytest.mark.parametrize("index", [2, 5, -1])
    def test_index_outside_batch_rejected(self, fetcher_for, index):
        adapter = BatchAdapter(fetcher_for())
        session = adapter.load("https://example.com/a.png\nhttps://example.com/b.png")
        with pytest.raises(AcquisitionError, match="No batch item"):
            adapter.start(session, index)
        assert all(i.status == BatchItemStatus.idle for i in session.items)
