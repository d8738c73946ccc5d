"""Protocol for image source adapters."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from productscan.types import SourceKind


@runtime_checkable
class ImageAcquirer(Protocol):
    """Protocol for one source of images (local file, single URL, URL batch).

    Implementations: FileAdapter, SingleUrlAdapter, BatchAdapter.
    """

    kind: SourceKind

    def reset(self) -> None:
        """Discard transient input state (typed URL text, batch items).

        Called when another adapter becomes active and after an image has
        been delivered downstream.
        """
        ...
