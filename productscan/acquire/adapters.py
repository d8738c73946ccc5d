"""Source adapters: local file, single URL and URL batch.

Each adapter turns its kind of input into an ``ImageArtifact``. URL adapters
share one normalizer and one fetcher; failures are re-raised with
provider-specific remediation text attached.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

from productscan.acquire.errors import AcquisitionError, InvalidFileError, MalformedBatchInput
from productscan.acquire.fetcher import ImageFetcher
from productscan.acquire.normalizer import normalize, remediation_for, split_batch
from productscan.types import (
    BatchItem,
    BatchItemStatus,
    ImageArtifact,
    LocalFile,
    NormalizedLink,
    SourceKind,
    is_image_mime_type,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# File adapter
# ---------------------------------------------------------------------------


class FileAdapter:
    """Wrap a user-provided file directly; no network step."""

    kind = SourceKind.file

    def read_path(self, path: Path) -> LocalFile:
        """Read a file from disk, declaring its type from the file extension."""
        mime_type, _ = mimetypes.guess_type(path.name)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise AcquisitionError(f"Cannot read {path}: {exc}") from exc
        return LocalFile(
            name=path.name,
            data=data,
            mime_type=mime_type or "application/octet-stream",
        )

    def acquire(self, file: LocalFile) -> ImageArtifact:
        """Validate the declared type and build the artifact.

        Raises:
            InvalidFileError: The file does not declare an ``image/*`` type.
        """
        if not is_image_mime_type(file.mime_type):
            logger.warning("Rejected %s: declared type %r", file.name, file.mime_type)
            raise InvalidFileError(file.name, file.mime_type)
        return ImageArtifact(data=file.data, mime_type=file.mime_type, name=file.name)

    def reset(self) -> None:
        pass


# ---------------------------------------------------------------------------
# URL adapters
# ---------------------------------------------------------------------------


def _fetch_with_remediation(fetcher: ImageFetcher, link: NormalizedLink) -> ImageArtifact:
    try:
        return fetcher.fetch_link(link)
    except AcquisitionError as exc:
        exc.remediation = remediation_for(link.original_url)
        logger.warning("Could not load %s: %s", link.original_url, exc.message)
        raise


class SingleUrlAdapter:
    """One URL typed into a form, normalized and fetched in one go.

    ``url_text`` mirrors the form field. The orchestrator fills it when a
    fetch starts and only ``reset`` clears it, so a failed URL stays in place
    for the user to correct.
    """

    kind = SourceKind.url

    def __init__(self, fetcher: ImageFetcher, default_extension: str = "jpg") -> None:
        self.fetcher = fetcher
        self.default_extension = default_extension
        self.url_text = ""

    def fetch(self, url: str, index: int = 1) -> ImageArtifact:
        """Trim, normalize and fetch ``url`` without touching the input text.

        ``index`` numbers the synthesized name when several URLs are acquired
        one after another.
        """
        url = url.strip()
        if not url:
            raise AcquisitionError("Please enter an image URL")
        link = normalize(url, index=index, default_extension=self.default_extension)
        return _fetch_with_remediation(self.fetcher, link)

    def reset(self) -> None:
        self.url_text = ""


@dataclass
class BatchSession:
    """Items from one bulk submission; lives until closed or an image is chosen."""

    items: list[BatchItem] = field(default_factory=list)
    closed: bool = False

    def __len__(self) -> int:
        return len(self.items)

    def item(self, index: int) -> BatchItem:
        """Item at 0-based ``index``; negative indices are not wrapped.

        Raises:
            AcquisitionError: ``index`` is outside the batch.
        """
        if not 0 <= index < len(self.items):
            raise AcquisitionError(f"No batch item at index {index}; the batch has {len(self.items)} item(s)")
        return self.items[index]

    @property
    def failed(self) -> list[BatchItem]:
        return [i for i in self.items if i.status == BatchItemStatus.failed]


class BatchAdapter:
    """Newline-delimited URL list; each item is fetched only when asked for."""

    kind = SourceKind.url_batch

    def __init__(self, fetcher: ImageFetcher, default_extension: str = "jpg") -> None:
        self.fetcher = fetcher
        self.default_extension = default_extension
        self.session: BatchSession | None = None

    def load(self, text: str) -> BatchSession:
        """Split and normalize a submission into idle items.

        Raises:
            MalformedBatchInput: No non-blank lines.
        """
        self.reset()
        urls = split_batch(text)
        if not urls:
            raise MalformedBatchInput()
        self.session = BatchSession(
            items=[
                BatchItem(link=normalize(url, index=i, default_extension=self.default_extension))
                for i, url in enumerate(urls, start=1)
            ]
        )
        logger.info("Loaded batch of %d URLs", len(urls))
        return self.session

    def start(self, session: BatchSession, index: int) -> BatchItem:
        """Move an item to ``loading`` and clear its previous error."""
        item = session.item(index)
        item.status = BatchItemStatus.loading
        item.error_message = None
        return item

    def fetch_item(self, item: BatchItem) -> ImageArtifact:
        """Fetch a started item, recording ``ready`` or ``failed`` on it."""
        try:
            artifact = _fetch_with_remediation(self.fetcher, item.link)
        except AcquisitionError as exc:
            item.status = BatchItemStatus.failed
            item.error_message = str(exc.report())
            raise
        item.status = BatchItemStatus.ready
        return artifact

    def reset(self) -> None:
        if self.session is not None:
            self.session.closed = True
        self.session = None
