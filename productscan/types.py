"""Core data types for ProductScan.

Every stage of the pipeline produces/consumes these types:
- Acquisition: ``NormalizedLink`` -> ``ImageArtifact`` (plus ``BatchItem`` for batch sessions)
- Detection: ``ImageArtifact`` -> ``DetectionResult``
- Persistence: ``DetectionResult`` -> ``StoredRecord``
"""

from __future__ import annotations

import base64
import enum
import io
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from productscan.acquire.errors import NotAnImageError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Provider(str, enum.Enum):
    """File-hosting service a raw URL was recognised as."""

    google_drive = "google_drive"
    dropbox = "dropbox"
    onedrive_sharepoint = "onedrive_sharepoint"
    generic = "generic"


class SourceKind(str, enum.Enum):
    """Which source adapter an acquisition came from."""

    file = "file"
    url = "url"
    url_batch = "url_batch"


class BatchItemStatus(str, enum.Enum):
    """Lifecycle of a single URL within a batch session.

    Transitions: idle -> loading -> ready | failed, and failed -> loading on retry.
    """

    idle = "idle"
    loading = "loading"
    ready = "ready"
    failed = "failed"


# ---------------------------------------------------------------------------
# Acquisition types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizedLink:
    """A raw URL rewritten into a best-guess direct-fetch URL.

    ``fetch_url`` equals ``original_url`` when no provider transform applies.
    """

    original_url: str
    fetch_url: str
    suggested_name: str
    provider: Provider = Provider.generic

    @property
    def was_rewritten(self) -> bool:
        return self.fetch_url != self.original_url


@dataclass(frozen=True)
class ImageArtifact:
    """Binary image payload handed to the detection stage.

    The MIME type is validated on construction: anything not starting with
    ``image/`` raises ``NotAnImageError``.
    """

    data: bytes
    mime_type: str
    name: str

    def __post_init__(self) -> None:
        if not is_image_mime_type(self.mime_type):
            raise NotAnImageError(self.mime_type)

    @property
    def size(self) -> int:
        return len(self.data)

    def to_data_uri(self) -> str:
        """Encode as an inline ``data:`` URI (fallback image reference for storage)."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    def dimensions(self) -> tuple[int, int] | None:
        """(width, height) read from the image header, or None if Pillow can't parse it."""
        from PIL import Image, UnidentifiedImageError

        try:
            with Image.open(io.BytesIO(self.data)) as img:
                return img.size
        except (UnidentifiedImageError, OSError):
            return None


@dataclass(frozen=True)
class LocalFile:
    """A user-provided file: raw bytes plus the type the file declares."""

    name: str
    data: bytes
    mime_type: str


@dataclass
class BatchItem:
    """One line of a batch submission and the state of its fetch."""

    link: NormalizedLink
    status: BatchItemStatus = BatchItemStatus.idle
    error_message: str | None = None

    @property
    def is_loading(self) -> bool:
        return self.status == BatchItemStatus.loading


def is_image_mime_type(mime_type: str | None) -> bool:
    """True if a declared content type names an image (``image/*``)."""
    if not mime_type:
        return False
    return mime_type.split(";")[0].strip().lower().startswith("image/")


# ---------------------------------------------------------------------------
# Detection types
# ---------------------------------------------------------------------------


class DefectLocation(BaseModel):
    """Bounding box in percent (0-100) of image dimensions."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class Defect(BaseModel):
    """A single defect reported by the vision model."""

    type: str = "other_defect"
    severity: str = "minor"
    location: DefectLocation = Field(default_factory=DefectLocation)
    confidence: float = 0.0


class DetectionResult(BaseModel):
    """Structured answer from the detection model.

    Defects are still called ``cracks`` and the product type ``window_type``
    so stored records stay compatible with existing history data.
    """

    cracks: list[Defect] = Field(default_factory=list)
    window_type: str = "unknown"
    overall_confidence: float = 0.0
    analysis: str = ""
    is_window: bool | None = None
    non_window_reason: str | None = None
    is_defective: bool | None = None

    @property
    def defect_found(self) -> bool:
        if self.is_defective is not None:
            return self.is_defective
        return len(self.cracks) > 0


class StoredRecord(BaseModel):
    """A persisted detection, as returned by the record store."""

    id: str
    image_url: str
    image_name: str
    detection_result: DetectionResult
    crack_detected: bool
    window_type: str | None = None
    confidence_score: float | None = None
    created_at: datetime
