"""CLI entrypoint for image acquisition and defect detection.

Usage:
    python -m productscan [SOURCE ...] [--batch urls.txt [--item N]]
                          [--output <dir>] [--analyze] [--history] [--record ID]
                          [--config config.yaml] [--json]

SOURCE is a local image path or an http(s) URL (Google Drive, Dropbox and
OneDrive/SharePoint sharing links are rewritten to direct downloads).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from productscan.acquire.errors import ErrorReport, MalformedBatchInput
from productscan.acquire.fetcher import ImageFetcher
from productscan.acquire.orchestrator import AcquisitionOrchestrator, AcquisitionResult
from productscan.config import ProductScanConfig
from productscan.detect.errors import DetectionError
from productscan.pipeline import DefectAnalyzer, DefectDetector, create_detector, record_detection
from productscan.storage.base import StorageError
from productscan.storage.local import LocalDetectionStore, LocalObjectStorage
from productscan.types import ImageArtifact, StoredRecord

console = Console()
logger = logging.getLogger(__name__)


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _artifact_panel(artifact: ImageArtifact, record: StoredRecord | None) -> Panel:
    dims = artifact.dimensions()
    lines = [
        f"[bold]Name:[/bold] {artifact.name}",
        f"[bold]Type:[/bold] {artifact.mime_type}",
        f"[bold]Size:[/bold] {artifact.size:,} bytes",
    ]
    if dims:
        lines.append(f"[bold]Dimensions:[/bold] {dims[0]} x {dims[1]}")
    if record is not None:
        result = record.detection_result
        verdict = "[red]DEFECTIVE[/red]" if result.defect_found else "[green]OK[/green]"
        lines += [
            f"[bold]Product:[/bold] {result.window_type}",
            f"[bold]Verdict:[/bold] {verdict}",
            f"[bold]Defects:[/bold] {len(result.cracks)}",
            f"[bold]Confidence:[/bold] {result.overall_confidence:.0f}%",
            f"[bold]Record:[/bold] {record.id}",
            result.analysis,
        ]
    return Panel("\n".join(lines), title="Image Acquired", border_style="green")


def _error_panel(source: str, error: ErrorReport) -> Panel:
    body = error.message
    if error.remediation:
        body += f"\n\n[dim]{error.remediation}[/dim]"
    return Panel(body, title=f"Failed: {source}", border_style="red")


def _history_table(records: list[StoredRecord]) -> Table:
    table = Table(title="Detection History", show_lines=True)
    table.add_column("Date", style="cyan")
    table.add_column("Image")
    table.add_column("Product", width=12)
    table.add_column("Defects", justify="center", width=8)
    table.add_column("Confidence", justify="right", width=10)
    for record in records:
        table.add_row(
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            record.image_name,
            record.window_type or "N/A",
            "YES" if record.crack_detected else "NO",
            f"{record.confidence_score or 0:.0f}%",
        )
    return table


def _record_to_dict(record: StoredRecord) -> dict:
    return json.loads(record.model_dump_json())


def _handle_record(config: ProductScanConfig, record_id: str, as_json: bool) -> int:
    store = LocalDetectionStore(config.storage.root)
    try:
        record = store.get(record_id)
    except StorageError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        return 1
    if as_json:
        print(json.dumps(_record_to_dict(record), indent=2))
    else:
        result = record.detection_result
        lines = [
            f"[bold]Image:[/bold] {record.image_name}",
            f"[bold]URL:[/bold] {record.image_url[:120]}",
            f"[bold]Date:[/bold] {record.created_at:%Y-%m-%d %H:%M}",
            f"[bold]Product:[/bold] {result.window_type}",
            f"[bold]Confidence:[/bold] {result.overall_confidence:.0f}%",
        ]
        for defect in result.cracks:
            lines.append(f"  - {defect.type} ({defect.severity}, {defect.confidence:.0f}%)")
        lines.append(result.analysis)
        console.print(Panel("\n".join(lines), title=f"Record {record.id}", border_style="cyan"))
    return 0


def _handle_history(config: ProductScanConfig, as_json: bool) -> int:
    store = LocalDetectionStore(config.storage.root)
    records = store.list_recent(config.storage.recent_limit)
    if as_json:
        print(json.dumps([_record_to_dict(r) for r in records], indent=2))
    elif records:
        console.print(_history_table(records))
    else:
        console.print("[yellow]No detections recorded yet.[/yellow]")
    return 0


def _acquire_batch(
    orchestrator: AcquisitionOrchestrator,
    batch_path: Path,
    item: int | None,
) -> list[tuple[str, AcquisitionResult]]:
    """Open a batch and fetch the chosen item, or items in order until one succeeds."""
    try:
        session = orchestrator.acquire_from_url_batch(batch_path.read_text())
    except MalformedBatchInput as exc:
        return [(str(batch_path), AcquisitionResult(error=exc.report()))]

    if item is not None:
        if not 1 <= item <= len(session):
            msg = f"--item must be between 1 and {len(session)}"
            return [(str(batch_path), AcquisitionResult(error=ErrorReport(msg)))]
        indices = [item - 1]
    else:
        indices = list(range(len(session)))

    outcomes: list[tuple[str, AcquisitionResult]] = []
    for index in indices:
        source = session.item(index).link.original_url
        result = orchestrator.fetch_batch_item(index).result()
        outcomes.append((source, result))
        if result.delivered:
            break
    # Earlier failed items are only reported when nothing could be loaded
    succeeded = [o for o in outcomes if o[1].ok]
    if not succeeded:
        logger.warning("%d of %d batch item(s) failed to load", len(session.failed), len(session))
    return succeeded or outcomes


def _unique_destination(directory: Path, name: str, taken: set[Path]) -> Path:
    """``directory / name``, suffixed ``_2``, ``_3`` ... if this run already wrote it."""
    destination = directory / name
    counter = 2
    while destination in taken:
        destination = directory / f"{Path(name).stem}_{counter}{Path(name).suffix}"
        counter += 1
    taken.add(destination)
    return destination


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Acquire building-product images and detect defects.",
        prog="python -m productscan",
    )
    parser.add_argument("sources", nargs="*", help="Image file paths or URLs")
    parser.add_argument("--batch", type=Path, default=None, help="File with one image URL per line")
    parser.add_argument("--item", type=int, default=None, help="1-based batch item to fetch")
    parser.add_argument("--output", "-o", type=Path, default=None, help="Write acquired images here")
    parser.add_argument("--analyze", action="store_true", help="Run defect detection and store results")
    parser.add_argument("--history", action="store_true", help="List recent detections")
    parser.add_argument("--record", default=None, help="Show one stored detection by id")
    parser.add_argument("--config", type=Path, default=None, help="ProductScan config YAML")
    parser.add_argument("--json", action="store_true", help="Output JSON summary")
    args = parser.parse_args(argv)

    if not args.json:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_time=True, show_path=False)],
        )
    else:
        logging.basicConfig(level=logging.WARNING)

    if args.config and not args.config.is_file():
        console.print(f"[red]Error: {args.config} not found[/red]")
        return 1
    config = ProductScanConfig.from_yaml(args.config) if args.config else ProductScanConfig.default()

    if args.history:
        return _handle_history(config, args.json)
    if args.record:
        return _handle_record(config, args.record, args.json)

    if not args.sources and args.batch is None:
        parser.error("provide at least one SOURCE or --batch")
    if args.batch is not None and not args.batch.is_file():
        console.print(f"[red]Error: {args.batch} not found[/red]")
        return 1

    detector: DefectDetector | None = None
    if args.analyze:
        try:
            detector = DefectAnalyzer(
                create_detector(config.detection, config.detection.resolve_api_key()),
                config.detection,
            )
        except ValueError as exc:
            console.print(f"[red]Error: {exc}[/red]")
            return 1

    acquired: list[ImageArtifact] = []
    outcomes: list[tuple[str, AcquisitionResult]] = []
    fetcher = ImageFetcher(config.fetch)
    with AcquisitionOrchestrator(acquired.append, fetcher, config.acquisition) as orchestrator:
        for position, source in enumerate(args.sources, start=1):
            if _is_url(source):
                future = orchestrator.acquire_from_url(source, index=position)
            else:
                path = Path(source)
                if not path.is_file():
                    outcomes.append((source, AcquisitionResult(error=ErrorReport(f"{source} not found"))))
                    continue
                future = orchestrator.acquire_from_file(path)
            outcomes.append((source, future.result()))

        if args.batch is not None:
            outcomes.extend(_acquire_batch(orchestrator, args.batch, args.item))
    logger.info("Acquired %d image(s)", len(acquired))

    store = LocalDetectionStore(config.storage.root)
    storage = LocalObjectStorage(
        config.storage.root, config.storage.bucket, config.storage.public_base_url,
    )

    failures = 0
    summary: list[dict] = []
    written: set[Path] = set()
    for source, result in outcomes:
        entry: dict = {"source": source, "ok": result.ok}
        if result.error is not None:
            failures += 1
            entry.update(error=result.error.message, remediation=result.error.remediation)
            if not args.json:
                console.print(_error_panel(source, result.error))
            summary.append(entry)
            continue

        artifact = result.artifact
        entry.update(name=artifact.name, mime_type=artifact.mime_type, size=artifact.size)
        if args.output is not None:
            args.output.mkdir(parents=True, exist_ok=True)
            destination = _unique_destination(args.output, artifact.name, written)
            destination.write_bytes(artifact.data)
            entry["path"] = str(destination)

        record: StoredRecord | None = None
        if detector is not None:
            try:
                record = record_detection(artifact, detector, store, storage)
                entry["record"] = _record_to_dict(record)
            except (DetectionError, StorageError) as exc:
                failures += 1
                entry.update(ok=False, error=str(exc))
                if not args.json:
                    console.print(_error_panel(source, ErrorReport(str(exc))))

        if not args.json:
            console.print(_artifact_panel(artifact, record))
        summary.append(entry)

    if args.json:
        print(json.dumps(summary, indent=2, default=str))
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
