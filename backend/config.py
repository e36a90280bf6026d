"""
Runtime settings for document generation.
Loads backend/.env (python-dotenv) and reads APP_ENV, S3_BUCKET, AWS_REGION,
DOCUMENT_* and BROWSER_POOL_* from the environment.
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_ENV_FILE = Path(__file__).resolve().parent / ".env"


class GenerationSettings(BaseModel):
    """Every tunable of the generation engine. Defaults match production."""

    environment: str = "development"

    # Object storage
    s3_bucket: str = ""
    aws_region: str = "us-east-2"
    storage_prefix: str = "documents/"
    storage_connect_timeout: float = Field(default=10.0, gt=0)
    storage_read_timeout: float = Field(default=30.0, gt=0)
    storage_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.5, ge=0)
    retry_max_delay: float = Field(default=8.0, ge=0)

    # Browser pool
    browser_pool_capacity: int = Field(default=5, ge=1)
    browser_idle_sweep_seconds: float = Field(default=60.0, gt=0)
    browser_launch_timeout: float = Field(default=30.0, gt=0)
    browser_health_timeout: float = Field(default=5.0, gt=0)
    page_load_timeout: float = Field(default=30.0, gt=0)
    pdf_page_format: str = "Letter"

    # Rendering
    template_cache_ttl_seconds: float = Field(default=300.0, gt=0)
    max_concurrent_renders: int = Field(default=3, ge=1)
    render_timeout: float | None = Field(default=None, gt=0)
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "dealer-documents")

    house_account_id: str = "default"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"production", "prod"}

    @property
    def allow_local_fallback(self) -> bool:
        return not self.is_production

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GenerationSettings":
        """Build settings from the process environment (after loading backend/.env)."""
        if environ is None:
            load_dotenv(_ENV_FILE)
            environ = os.environ
        mapping = {
            "environment": "APP_ENV",
            "s3_bucket": "S3_BUCKET",
            "aws_region": "AWS_REGION",
            "storage_prefix": "DOCUMENT_STORAGE_PREFIX",
            "storage_connect_timeout": "DOCUMENT_STORAGE_CONNECT_TIMEOUT",
            "storage_read_timeout": "DOCUMENT_STORAGE_READ_TIMEOUT",
            "storage_max_attempts": "DOCUMENT_STORAGE_MAX_ATTEMPTS",
            "retry_base_delay": "DOCUMENT_RETRY_BASE_DELAY",
            "retry_max_delay": "DOCUMENT_RETRY_MAX_DELAY",
            "browser_pool_capacity": "BROWSER_POOL_CAPACITY",
            "browser_idle_sweep_seconds": "BROWSER_POOL_SWEEP_SECONDS",
            "browser_launch_timeout": "BROWSER_POOL_LAUNCH_TIMEOUT",
            "browser_health_timeout": "BROWSER_POOL_HEALTH_TIMEOUT",
            "page_load_timeout": "DOCUMENT_PAGE_LOAD_TIMEOUT",
            "pdf_page_format": "DOCUMENT_PDF_FORMAT",
            "template_cache_ttl_seconds": "DOCUMENT_TEMPLATE_CACHE_TTL",
            "max_concurrent_renders": "DOCUMENT_MAX_CONCURRENT_RENDERS",
            "render_timeout": "DOCUMENT_RENDER_TIMEOUT",
            "temp_dir": "DOCUMENT_TEMP_DIR",
            "house_account_id": "HOUSE_ACCOUNT_ID",
        }
        values = {}
        for field_name, env_name in mapping.items():
            raw = (environ.get(env_name) or "").strip()
            if raw:
                values[field_name] = raw
        return cls(**values)
