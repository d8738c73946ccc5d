"""Rewrite cloud-storage sharing links into directly fetchable URLs.

Provider detection is plain substring matching evaluated in a fixed order;
the first matching rule wins and anything unmatched passes through unchanged.
Normalization never raises: a link that can't be rewritten is returned as-is
and the fetch that follows is where the failure surfaces.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlsplit, urlunsplit

from productscan.types import NormalizedLink, Provider

logger = logging.getLogger(__name__)

DRIVE_FILE_ID_PATTERN = re.compile(r"/file/d/([a-zA-Z0-9_-]+)")
DRIVE_VIEW_TEMPLATE = "https://drive.google.com/uc?export=view&id={file_id}"
DRIVE_DOWNLOAD_TEMPLATE = "https://drive.google.com/uc?export=download&id={file_id}"

_DRIVE_UC_ID_PATTERN = re.compile(r"[?&]id=([a-zA-Z0-9_-]+)")
_EXTENSION_PATTERN = re.compile(r"^[A-Za-z0-9]{1,5}$")

_ONEDRIVE_HOSTS = ("sharepoint.com", "onedrive.live.com", "1drv.ms")

REMEDIATION = {
    Provider.google_drive: (
        "For Google Drive images:\n"
        "• Ensure file is publicly shared\n"
        "• \"Anyone with the link can view\"\n"
        "• Try a different sharing link format"
    ),
    Provider.dropbox: (
        "For Dropbox images:\n"
        "• Use sharing links (end with ?dl=0)\n"
        "• Ensure link is accessible\n"
        "• Try direct download links"
    ),
    Provider.onedrive_sharepoint: (
        "For OneDrive/SharePoint images:\n"
        "• Try different link formats\n"
        "• Use direct download links when possible\n"
        "• Ensure proper sharing permissions"
    ),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize(url: str, index: int = 1, default_extension: str = "jpg") -> NormalizedLink:
    """Map a raw URL to a best-effort direct-fetch link.

    Args:
        url: URL to rewrite, already trimmed by the caller. It is kept verbatim as
            ``original_url``.
        index: 1-based position of the URL in its submission, used for display names.
        default_extension: Extension for synthesized names when none can be derived.

    Returns:
        A ``NormalizedLink``; ``fetch_url == original_url`` when no rule applies.
    """
    provider, fetch_url = _rewrite(url)
    link = NormalizedLink(
        original_url=url,
        fetch_url=fetch_url,
        suggested_name=_suggest_name(url, provider, index, default_extension),
        provider=provider,
    )
    if link.was_rewritten:
        logger.debug("Normalized %s link %s -> %s", provider.value, url, fetch_url)
    return link


def remediation_for(url: str) -> str | None:
    """Provider-specific troubleshooting text for a failing URL, if any.

    Matches on host substrings only, so malformed links that didn't normalize
    still get the hint for the service they point at.
    """
    if "drive.google.com" in url:
        return REMEDIATION[Provider.google_drive]
    if "dropbox.com" in url:
        return REMEDIATION[Provider.dropbox]
    if any(host in url for host in _ONEDRIVE_HOSTS):
        return REMEDIATION[Provider.onedrive_sharepoint]
    return None


def drive_download_url(fetch_url: str) -> str | None:
    """The ``export=download`` variant of a Drive ``export=view`` URL, else None."""
    if "drive.google.com" not in fetch_url or "export=view" not in fetch_url:
        return None
    match = _DRIVE_UC_ID_PATTERN.search(fetch_url)
    if not match:
        return None
    return DRIVE_DOWNLOAD_TEMPLATE.format(file_id=match.group(1))


def split_batch(text: str) -> list[str]:
    """Split newline-delimited input into trimmed, non-blank lines (order preserved)."""
    return [line.strip() for line in text.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Provider rules
# ---------------------------------------------------------------------------


def _rewrite(url: str) -> tuple[Provider, str]:
    if "drive.google.com" in url and "/file/d/" in url:
        match = DRIVE_FILE_ID_PATTERN.search(url)
        if match:
            return Provider.google_drive, DRIVE_VIEW_TEMPLATE.format(file_id=match.group(1))
        return Provider.generic, url
    if "dropbox.com" in url and "/s/" in url:
        return Provider.dropbox, _force_dropbox_download(url)
    if "dropbox.com" in url and "/scl/fi/" in url:
        return Provider.dropbox, url.replace("?rlkey=", "?raw=1&rlkey=")
    if any(host in url for host in _ONEDRIVE_HOSTS):
        if "/_layouts/" in url:
            # Already a download link
            return Provider.onedrive_sharepoint, url
        return Provider.onedrive_sharepoint, url.replace("/redir?", "/download.aspx?")
    return Provider.generic, url


def _force_dropbox_download(url: str) -> str:
    """Set ``dl=1`` as the last query parameter, dropping any existing ``dl``."""
    parts = urlsplit(url)
    params = [
        p for p in parts.query.split("&")
        if p and p != "dl" and not p.startswith("dl=")
    ]
    params.append("dl=1")
    return urlunsplit(parts._replace(query="&".join(params)))


def _suggest_name(url: str, provider: Provider, index: int, default_extension: str) -> str:
    if provider == Provider.google_drive:
        return f"drive_image_{index}.{default_extension}"
    if provider == Provider.dropbox:
        return f"dropbox_image_{index}.{default_extension}"
    if provider == Provider.onedrive_sharepoint:
        return f"onedrive_image_{index}.{default_extension}"

    segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
    stem, dot, ext = segment.rpartition(".")
    if dot and stem and _EXTENSION_PATTERN.match(ext):
        return f"image_{index}.{ext.lower()}"
    return f"image_{index}.{default_extension}"
