"""Analyze an acquired image and persist the result.

Flow for one ``ImageArtifact``:
    1. Detection (retrying retryable API errors with exponential backoff)
    2. Best-effort upload to object storage; falls back to an inline data URI
    3. Record insert
"""

from __future__ import annotations

import logging
import time
from typing import Protocol, runtime_checkable

from productscan.config import DetectionConfig
from productscan.detect.errors import DetectionAPIError
from productscan.storage.base import DetectionStore, ObjectStorage, StorageError
from productscan.types import DetectionResult, ImageArtifact, StoredRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DefectDetector protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class DefectDetector(Protocol):
    """Protocol for vision-model detection backends."""

    def analyze(self, artifact: ImageArtifact) -> DetectionResult: ...


def create_detector(config: DetectionConfig, api_key: str | None) -> DefectDetector:
    """Instantiate the configured detection backend."""
    if config.provider == "gemini":
        from productscan.detect.gemini import GeminiDetector

        return GeminiDetector(
            api_key=api_key,
            model=config.model,
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
        )
    raise ValueError(f"Unknown detection provider: {config.provider!r}")


# ---------------------------------------------------------------------------
# Detection with retry
# ---------------------------------------------------------------------------


class DefectAnalyzer:
    """Wrap a detector with retry of transient API failures."""

    def __init__(self, detector: DefectDetector, config: DetectionConfig | None = None) -> None:
        self.detector = detector
        self.config = config or DetectionConfig()

    def analyze(self, artifact: ImageArtifact) -> DetectionResult:
        """Run detection, retrying only ``DetectionAPIError`` marked retryable.

        Other detection errors (unparseable reply, not a product) propagate
        on the first occurrence.
        """
        attempts = max(1, self.config.max_retries)
        attempt = 0
        while True:
            try:
                return self.detector.analyze(artifact)
            except DetectionAPIError as e:
                attempt += 1
                if not e.retryable or attempt >= attempts:
                    logger.error("Detection API error: %s", e)
                    raise
                delay = self.config.retry_delay_seconds * (2 ** (attempt - 1))
                logger.warning("Retryable error (attempt %d): %s, retrying in %.1fs", attempt, e, delay)
                time.sleep(delay)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def store_image(artifact: ImageArtifact, storage: ObjectStorage | None) -> str:
    """Upload the image and return its URL, or a data URI when the upload fails."""
    if storage is None:
        return artifact.to_data_uri()
    path = f"{int(time.time() * 1000)}_{artifact.name}"
    try:
        return storage.upload(artifact.data, path, content_type=artifact.mime_type)
    except StorageError as exc:
        logger.warning("Upload failed, storing inline image instead: %s", exc)
        return artifact.to_data_uri()


def record_detection(
    artifact: ImageArtifact,
    detector: DefectDetector,
    store: DetectionStore,
    storage: ObjectStorage | None = None,
) -> StoredRecord:
    """Analyze ``artifact`` and persist the result.

    Detection failures propagate before anything is written, so images that
    aren't products never reach the store.
    """
    logger.info("Analyzing %s", artifact.name)
    result = detector.analyze(artifact)
    logger.info(
        "%s: %s, %d defect(s), confidence %.0f",
        artifact.name, result.window_type, len(result.cracks), result.overall_confidence,
    )
    image_url = store_image(artifact, storage)
    return store.save(image_url, artifact.name, result)
