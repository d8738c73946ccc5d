"""Error types for image acquisition."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorReport:
    """Human-readable failure payload surfaced to the interface layer."""

    message: str
    remediation: str | None = None

    def __str__(self) -> str:
        if self.remediation:
            return f"{self.message}\n\n{self.remediation}"
        return self.message


class AcquisitionError(Exception):
    """Base exception for acquisition failures.

    ``remediation`` is filled in by the adapters when the failing URL belongs
    to a known provider.
    """

    def __init__(self, message: str, remediation: str | None = None) -> None:
        self.message = message
        self.remediation = remediation
        super().__init__(message)

    def report(self) -> ErrorReport:
        return ErrorReport(message=self.message, remediation=self.remediation)


class FetchError(AcquisitionError):
    """Raised when the HTTP response is not successful.

    ``status`` is 0 when the request never produced a response
    (DNS failure, refused connection, ...).
    """

    def __init__(self, status: int, status_text: str, url: str | None = None) -> None:
        self.status = status
        self.status_text = status_text
        self.url = url
        super().__init__(f"Failed to fetch image: {status} {status_text}".rstrip())


class NotAnImageError(AcquisitionError):
    """Raised when content was retrieved but is not declared as an image."""

    def __init__(self, content_type: str | None) -> None:
        self.content_type = content_type
        super().__init__(
            f"URL does not point to a valid image file (content type: {content_type or 'unknown'})"
        )


class InvalidFileError(NotAnImageError):
    """Raised when a local file's declared type is not an image."""

    def __init__(self, name: str, content_type: str | None) -> None:
        super().__init__(content_type)
        self.name = name
        self.message = f"{name} is not an image file (declared type: {content_type or 'unknown'})"
        self.args = (self.message,)


class MalformedBatchInput(AcquisitionError):
    """Raised when a batch submission contains no URLs."""

    def __init__(self) -> None:
        super().__init__("Please enter at least one image URL")
