"""Image acquisition from local files, single URLs and URL batches.

Modules:
    errors        — Acquisition error taxonomy and the ErrorReport payload
    normalizer    — Cloud-storage sharing link -> direct fetch URL
    fetcher       — HTTP fetch with image content-type validation
    base          — ImageAcquirer protocol
    adapters      — File, single-URL and batch source adapters
    orchestrator  — Active-adapter tracking and one-shot delivery
"""
