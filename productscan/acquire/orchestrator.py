"""Coordinate the source adapters and deliver exactly one image downstream.

Every user action returns a ``Future`` that resolves once to an
``AcquisitionResult``; acquisition errors are folded into the result and
never raised from the future. Work runs on a thread pool so that a slow
fetch doesn't block the caller.

Only one adapter is active at a time. Switching adapters (or delivering an
image) starts a new generation; results that arrive for an older generation
are returned to their future but never passed to ``on_acquired``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Hashable

from productscan.acquire.adapters import BatchAdapter, BatchSession, FileAdapter, SingleUrlAdapter
from productscan.acquire.base import ImageAcquirer
from productscan.acquire.errors import AcquisitionError, ErrorReport
from productscan.acquire.fetcher import ImageFetcher
from productscan.config import AcquisitionConfig
from productscan.types import ImageArtifact, LocalFile, SourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcquisitionResult:
    """Outcome of one acquisition action.

    ``delivered`` is False when the image arrived after its adapter was
    deactivated (or a sibling batch item won), so it was discarded.
    """

    artifact: ImageArtifact | None = None
    error: ErrorReport | None = None
    delivered: bool = False

    @property
    def ok(self) -> bool:
        return self.artifact is not None


@dataclass(frozen=True)
class _Ticket:
    kind: SourceKind
    generation: int
    session: BatchSession | None = None


class AcquisitionOrchestrator:
    """Single entry point for the interface layer.

    Args:
        on_acquired: Called with each delivered artifact, at most once per action.
        fetcher: Shared fetcher for both URL adapters.
        config: Worker-pool and naming settings.
        executor: Run work here instead of an owned thread pool.
    """

    def __init__(
        self,
        on_acquired: Callable[[ImageArtifact], None],
        fetcher: ImageFetcher | None = None,
        config: AcquisitionConfig | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.config = config or AcquisitionConfig()
        self.on_acquired = on_acquired
        fetcher = fetcher or ImageFetcher()

        self.file_adapter = FileAdapter()
        self.url_adapter = SingleUrlAdapter(fetcher, self.config.default_extension)
        self.batch_adapter = BatchAdapter(fetcher, self.config.default_extension)
        self._adapters: dict[SourceKind, ImageAcquirer] = {
            SourceKind.file: self.file_adapter,
            SourceKind.url: self.url_adapter,
            SourceKind.url_batch: self.batch_adapter,
        }

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="productscan-acquire",
        )
        self._lock = threading.Lock()
        self._active: SourceKind | None = None
        self._generation = 0
        self._in_flight: dict[Hashable, Future] = {}

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def active(self) -> SourceKind | None:
        return self._active

    @property
    def batch(self) -> BatchSession | None:
        return self.batch_adapter.session

    def activate(self, kind: SourceKind) -> None:
        """Make ``kind`` the active adapter, clearing the others' input state."""
        with self._lock:
            self._activate_locked(kind)

    def is_loading(self, kind: SourceKind, index: int | None = None) -> bool:
        key = kind if index is None else (kind, index)
        with self._lock:
            future = self._in_flight.get(key)
            return future is not None and not future.done()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def acquire_from_file(self, file: LocalFile | Path) -> Future[AcquisitionResult]:
        """Wrap a local file (already in memory, or a path read on a worker)."""

        def work() -> ImageArtifact:
            local = self.file_adapter.read_path(file) if isinstance(file, Path) else file
            return self.file_adapter.acquire(local)

        return self._submit(SourceKind.file, SourceKind.file, work)

    def acquire_from_url(self, url: str, index: int = 1) -> Future[AcquisitionResult]:
        """Normalize and fetch one URL; ``index`` numbers its synthesized name."""

        def prepare() -> None:
            self.url_adapter.url_text = url

        return self._submit(SourceKind.url, SourceKind.url, lambda: self.url_adapter.fetch(url, index), prepare)

    def acquire_from_url_batch(self, text: str) -> BatchSession:
        """Open a batch session from newline-delimited URLs; nothing is fetched yet.

        Raises:
            MalformedBatchInput: The text holds no URLs. No session is created.
        """
        with self._lock:
            self._activate_locked(SourceKind.url_batch)
            self._drop_in_flight(SourceKind.url_batch)
            return self.batch_adapter.load(text)

    def fetch_batch_item(self, index: int) -> Future[AcquisitionResult]:
        """Fetch one item of the open batch; the first success closes the batch."""
        with self._lock:
            session = self.batch_adapter.session
            if self._active != SourceKind.url_batch or session is None:
                return _resolved(AcquisitionError("No batch of URLs has been loaded").report())
            key = (SourceKind.url_batch, index)
            existing = self._in_flight.get(key)
            if existing is not None and not existing.done():
                return existing
            try:
                item = self.batch_adapter.start(session, index)
            except AcquisitionError as exc:
                return _resolved(exc.report())
            ticket = _Ticket(SourceKind.url_batch, self._generation, session)
            future = self._executor.submit(self._run, ticket, lambda: self.batch_adapter.fetch_item(item))
            self._in_flight[key] = future
            return future

    def close_batch(self) -> None:
        """Discard the batch session; in-flight item fetches will be ignored."""
        with self._lock:
            self.batch_adapter.reset()
            self._drop_in_flight(SourceKind.url_batch)

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> AcquisitionOrchestrator:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _activate_locked(self, kind: SourceKind) -> None:
        if self._active == kind:
            return
        for other, adapter in self._adapters.items():
            if other != kind:
                adapter.reset()
                self._drop_in_flight(other)
        logger.debug("Active source: %s -> %s", self._active, kind.value)
        self._active = kind
        self._generation += 1

    def _drop_in_flight(self, kind: SourceKind) -> None:
        for key in list(self._in_flight):
            if key == kind or (isinstance(key, tuple) and key[0] == kind):
                del self._in_flight[key]

    def _submit(
        self,
        kind: SourceKind,
        key: Hashable,
        work: Callable[[], ImageArtifact],
        prepare: Callable[[], None] | None = None,
    ) -> Future[AcquisitionResult]:
        with self._lock:
            self._activate_locked(kind)
            existing = self._in_flight.get(key)
            if existing is not None and not existing.done():
                # Trigger is disabled while a fetch is in flight
                return existing
            if prepare is not None:
                prepare()
            ticket = _Ticket(kind, self._generation)
            future = self._executor.submit(self._run, ticket, work)
            self._in_flight[key] = future
            return future

    def _run(self, ticket: _Ticket, work: Callable[[], ImageArtifact]) -> AcquisitionResult:
        try:
            artifact = work()
        except AcquisitionError as exc:
            return AcquisitionResult(error=exc.report())
        return AcquisitionResult(artifact=artifact, delivered=self._deliver(ticket, artifact))

    def _deliver(self, ticket: _Ticket, artifact: ImageArtifact) -> bool:
        with self._lock:
            stale = (
                self._active != ticket.kind
                or self._generation != ticket.generation
                or (ticket.session is not None and ticket.session.closed)
            )
            if stale:
                logger.info("Discarding %s from an inactive %s source", artifact.name, ticket.kind.value)
                return False
            for adapter in self._adapters.values():
                adapter.reset()
            self._in_flight.clear()
            self._generation += 1
        logger.info("Acquired %s (%s, %d bytes)", artifact.name, artifact.mime_type, artifact.size)
        self.on_acquired(artifact)
        return True


def _resolved(error: ErrorReport) -> Future[AcquisitionResult]:
    future: Future[AcquisitionResult] = Future()
    future.set_result(AcquisitionResult(error=error))
    return future
