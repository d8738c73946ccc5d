"""Shared test fixtures for ProductScan."""

from __future__ import annotations

import io
from dataclasses import dataclass, field

import pytest
from PIL import Image

from productscan.types import DetectionResult, ImageArtifact


# ---------------------------------------------------------------------------
# HTTP doubles
# ---------------------------------------------------------------------------


@dataclass
class FakeResponse:
    """Just enough of ``requests.Response`` for the fetcher."""

    status_code: int = 200
    reason: str = "OK"
    content: bytes = b""
    headers: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeSession:
    """Serves canned responses by URL and records every request.

    Unknown URLs answer 404. A value may also be an exception instance,
    which is raised from ``get``.
    """

    def __init__(self, routes: dict | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[dict] = []
        self.headers: dict = {}

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers or {}, "timeout": timeout})
        response = self.routes.get(url)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return FakeResponse(status_code=404, reason="Not Found")
        return response

    @property
    def urls(self) -> list[str]:
        return [c["url"] for c in self.calls]


def image_response(data: bytes, content_type: str = "image/png") -> FakeResponse:
    return FakeResponse(content=data, headers={"Content-Type": content_type})


def html_response() -> FakeResponse:
    return FakeResponse(
        content=b"<html><body>Sign in to continue</body></html>",
        headers={"Content-Type": "text/html; charset=utf-8"},
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def png_bytes() -> bytes:
    """A small valid PNG (64x48)."""
    buf = io.BytesIO()
    Image.new("RGB", (64, 48), (120, 160, 200)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def artifact(png_bytes) -> ImageArtifact:
    return ImageArtifact(data=png_bytes, mime_type="image/png", name="window.png")


@pytest.fixture
def make_session():
    """Factory for ``FakeSession`` objects."""
    return FakeSession


@pytest.fixture
def image_ok():
    return image_response


@pytest.fixture
def html_page():
    return html_response


@pytest.fixture
def detection_result() -> DetectionResult:
    return DetectionResult.model_validate({
        "is_window": True,
        "cracks": [
            {
                "type": "crack",
                "severity": "moderate",
                "location": {"x": 10, "y": 20, "width": 15, "height": 5},
                "confidence": 87,
            }
        ],
        "window_type": "window",
        "overall_confidence": 90,
        "analysis": "A diagonal crack in the lower left pane.",
        "is_defective": True,
    })
