"""Error types for defect detection."""

from __future__ import annotations


class DetectionError(Exception):
    """Base exception for detection failures."""


class DetectionAPIError(DetectionError):
    """Raised when the vision-model API call fails."""

    def __init__(self, provider: str, message: str, retryable: bool = False) -> None:
        self.provider = provider
        self.retryable = retryable
        super().__init__(f"[{provider}] {message}")


class DetectionParseError(DetectionError):
    """Raised when the model response holds no parseable JSON result."""


class NotAProductError(DetectionError):
    """Raised when the model reports the image shows no relevant product.

    Results of this kind must not be stored.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"{reason} Please upload an image that clearly shows the product for defect detection."
        )
