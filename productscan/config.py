"""Configuration models for ProductScan.

Pydantic v2 models with sensible defaults; works without a config file.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class FetchConfig(BaseModel):
    """Configuration for fetching images over HTTP."""

    accept_header: str = Field("image/*", description="Accept header sent with every image request")
    timeout_seconds: float | None = Field(
        None, description="Request timeout; None leaves the transport default in place"
    )
    user_agent: str | None = Field(None, description="Override the HTTP User-Agent")
    drive_download_fallback: bool = Field(
        True, description="Retry failing Drive view links once as export=download"
    )


class AcquisitionConfig(BaseModel):
    """Configuration for the acquisition orchestrator."""

    max_workers: int = Field(4, description="Worker threads for fetches and file reads")
    default_extension: str = Field("jpg", description="Extension for synthesized image names")


class DetectionConfig(BaseModel):
    """Configuration for the vision-model defect detector."""

    provider: str = Field("gemini", description="Detection backend: 'gemini'")
    model: str = Field("gemini-2.0-flash", description="Model identifier")
    api_key_env_var: str = Field("GEMINI_API_KEY", description="Env var holding the API key")
    temperature: float = Field(0.3, description="Sampling temperature")
    max_output_tokens: int = Field(1000, description="Response token limit")
    max_retries: int = Field(3, description="Max attempts per detection call")
    retry_delay_seconds: float = Field(1.0, description="Exponential backoff base")

    def resolve_api_key(self, api_key: str | None = None) -> str | None:
        """Explicit key first, then the configured environment variable."""
        return api_key or os.environ.get(self.api_key_env_var)


class StorageConfig(BaseModel):
    """Configuration for the local record store and object storage."""

    root: Path = Field(Path("detections"), description="Directory holding records and uploads")
    bucket: str = Field("window-images", description="Object storage bucket (subdirectory)")
    public_base_url: str | None = Field(
        None, description="Base URL uploads are served from; file:// URIs when unset"
    )
    recent_limit: int = Field(20, description="Records shown in history listings")


class ProductScanConfig(BaseModel):
    """Top-level configuration for ProductScan."""

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    acquisition: AcquisitionConfig = Field(default_factory=AcquisitionConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> ProductScanConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    @classmethod
    def default(cls) -> ProductScanConfig:
        """Return configuration with all defaults."""
        return cls()
