"""ProductScan — image acquisition and defect detection for building products."""

__version__ = "0.1.0"

from productscan.types import DetectionResult, ImageArtifact, NormalizedLink, Provider

__all__ = ["DetectionResult", "ImageArtifact", "NormalizedLink", "Provider", "__version__"]
