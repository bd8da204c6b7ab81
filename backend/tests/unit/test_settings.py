"""
Unit Tests for Settings and AppContext
"""

from pathlib import Path

import pytest
from sqlalchemy import inspect

from memeplate.config.settings import Settings
from memeplate.context import create_context
from memeplate.services.blob_store import LocalBlobStore


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.blob_backend == "local"
    assert settings.enforce_zone_bounds is True
    assert settings.max_upload_bytes == 50 * 1024 * 1024
    assert Path(settings.static_template_dir) == Path("./data/static") / "templates"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BLOB_BACKEND", "s3")
    monkeypatch.setenv("S3_BUCKET", "memes")
    monkeypatch.setenv("ENFORCE_ZONE_BOUNDS", "false")

    settings = Settings(_env_file=None)

    assert settings.blob_backend == "s3"
    assert settings.s3_bucket == "memes"
    assert settings.enforce_zone_bounds is False


@pytest.mark.asyncio
async def test_context_startup_creates_stores(test_settings):
    context = create_context(test_settings)

    await context.startup()
    await context.startup()

    assert context.started
    assert set(inspect(context.engine).get_table_names()) >= {"templates", "template_tags"}
    assert isinstance(context.blob_store, LocalBlobStore)
    assert Path(test_settings.static_template_dir).is_dir()
    assert context.validator.max_upload_bytes == 1024 * 1024

    await context.shutdown()
    assert not context.started
