"""HTTP fetch of candidate image URLs with content-type validation."""

from __future__ import annotations

import logging

import requests

from productscan.acquire.errors import FetchError, NotAnImageError
from productscan.acquire.normalizer import drive_download_url, normalize
from productscan.config import FetchConfig
from productscan.types import ImageArtifact, NormalizedLink, Provider, is_image_mime_type

logger = logging.getLogger(__name__)


class ImageFetcher:
    """Download a URL and turn it into an ``ImageArtifact``.

    A 2xx response whose declared ``Content-Type`` is not ``image/*`` is
    rejected with ``NotAnImageError``; permission-gated share links typically
    answer with an HTML sign-in page and 200 OK.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config or FetchConfig()
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            if self.config.user_agent:
                self._session.headers["User-Agent"] = self.config.user_agent
        return self._session

    def fetch(self, url: str, name: str | None = None) -> ImageArtifact:
        """GET ``url`` and validate the response is an image.

        Raises:
            FetchError: Non-success status, or no response at all (status 0).
            NotAnImageError: Successful response with a non-image content type.
        """
        logger.info("Fetching %s", url)
        try:
            resp = self.session.get(
                url,
                headers={"Accept": self.config.accept_header},
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise FetchError(0, str(exc), url=url) from exc

        if not resp.ok:
            raise FetchError(resp.status_code, resp.reason or "", url=url)

        data = resp.content
        content_type = resp.headers.get("Content-Type", "")
        if not is_image_mime_type(content_type):
            raise NotAnImageError(content_type or None)

        mime_type = content_type.split(";")[0].strip().lower()
        return ImageArtifact(data=data, mime_type=mime_type, name=name or normalize(url).suggested_name)

    def fetch_link(self, link: NormalizedLink) -> ImageArtifact:
        """Fetch a normalized link, with the one-shot Google Drive download fallback.

        A Drive ``export=view`` URL that fails with an HTTP error status is
        retried exactly once against the ``export=download`` variant.
        """
        try:
            return self.fetch(link.fetch_url, name=link.suggested_name)
        except FetchError as exc:
            fallback = self._drive_fallback(link, exc)
            if fallback is None:
                raise
            logger.warning(
                "Drive view link failed (%s %s), retrying as download: %s",
                exc.status, exc.status_text, fallback,
            )
            return self.fetch(fallback, name=link.suggested_name)

    def _drive_fallback(self, link: NormalizedLink, exc: FetchError) -> str | None:
        if not self.config.drive_download_fallback:
            return None
        if link.provider != Provider.google_drive or exc.status == 0:
            return None
        return drive_download_url(link.fetch_url)
