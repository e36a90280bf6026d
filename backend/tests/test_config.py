from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from config import GenerationSettings


def test_defaults():
    settings = GenerationSettings()
    assert settings.environment == "development"
    assert settings.browser_pool_capacity == 5
    assert settings.template_cache_ttl_seconds == 300.0
    assert settings.storage_max_attempts == 3
    assert settings.allow_local_fallback


def test_from_env_maps_variables():
    settings = GenerationSettings.from_env({
        "APP_ENV": "Production",
        "S3_BUCKET": "dealer-docs",
        "AWS_REGION": "us-west-2",
        "BROWSER_POOL_CAPACITY": "2",
        "DOCUMENT_TEMPLATE_CACHE_TTL": "60",
        "DOCUMENT_RENDER_TIMEOUT": "45.5",
        "DOCUMENT_TEMP_DIR": "/tmp/docs",
        "DOCUMENT_MAX_CONCURRENT_RENDERS": "  ",
    })
    assert settings.is_production
    assert not settings.allow_local_fallback
    assert settings.s3_bucket == "dealer-docs"
    assert settings.aws_region == "us-west-2"
    assert settings.browser_pool_capacity == 2
    assert settings.template_cache_ttl_seconds == 60.0
    assert settings.render_timeout == 45.5
    assert settings.temp_dir == Path("/tmp/docs")
    assert settings.max_concurrent_renders == 3


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        GenerationSettings.from_env({"BROWSER_POOL_CAPACITY": "0"})
