"""
Pytest Configuration and Fixtures
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Generator, List

import pytest
import pytest_asyncio
from sqlalchemy.orm import Session

from memeplate.config.settings import Settings
from memeplate.context import create_context
from memeplate.core.errors import BlobStoreError
from memeplate.core.validator import AssetUpload
from memeplate.models import build_engine, build_session_factory, init_db
from memeplate.models.template import AssetRef
from memeplate.services.blob_store import BlobStore, LocalBlobStore, StoredBlob


# Smallest byte string that passes for a PNG upload
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24


class FakeBlobStore(BlobStore):
    """
    In-memory blob store that records every call

    `events` can be shared with other recorders to check call ordering.
    """

    name = "fake"

    def __init__(self, events: List[tuple] = None):
        self.blobs: Dict[str, bytes] = {}
        self.written_at: Dict[str, datetime] = {}
        self.events = events if events is not None else []
        self.upload_calls: List[str] = []
        self.delete_calls: List[str] = []
        self.fail_upload = False
        self.fail_delete = False
        self.closed = False

    async def upload(self, data: bytes, content_type: str) -> AssetRef:
        if self.fail_upload:
            self.events.append(("upload_failed",))
            raise BlobStoreError("upload rejected by provider")
        storage_key = f"meme-templates/blob-{len(self.upload_calls)}.png"
        self.upload_calls.append(storage_key)
        self.blobs[storage_key] = data
        self.written_at[storage_key] = datetime.now(timezone.utc)
        self.events.append(("upload", storage_key))
        return AssetRef(url=f"https://cdn.test/{storage_key}", storage_key=storage_key)

    async def delete(self, storage_key: str) -> bool:
        self.delete_calls.append(storage_key)
        self.events.append(("delete", storage_key))
        if self.fail_delete:
            raise BlobStoreError("delete rejected by provider")
        return self.blobs.pop(storage_key, None) is not None

    async def exists(self, storage_key: str) -> bool:
        return storage_key in self.blobs

    async def list_blobs(self) -> List[StoredBlob]:
        return [StoredBlob(key, self.written_at[key]) for key in sorted(self.blobs)]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every store at a temporary directory"""
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'data' / 'templates.db'}",
        blob_backend="local",
        static_root=str(tmp_path / "static"),
        max_upload_bytes=1024 * 1024,
        log_level="DEBUG",
    )


@pytest.fixture
def test_db_engine(tmp_path: Path) -> Generator:
    """Create test database engine"""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    return build_session_factory(test_db_engine)


@pytest.fixture
def test_db_session(session_factory) -> Generator[Session, None, None]:
    """Create test database session"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def local_blob_store(tmp_path: Path) -> LocalBlobStore:
    store = LocalBlobStore(
        root_dir=str(tmp_path / "static" / "templates"),
        url_prefix="/static",
        url_subdir="templates",
    )
    store.ensure_directories()
    return store


@pytest.fixture
def png_upload() -> AssetUpload:
    return AssetUpload(data=PNG_BYTES, content_type="image/png", filename="drake.png")


@pytest.fixture
def sample_zones() -> List[dict]:
    """Two stacked text zones (Drake layout, right column)"""
    return [
        {"type": "text", "x": 0.5, "y": 0.0, "width": 0.5, "height": 0.5},
        {"type": "text", "x": 0.5, "y": 0.5, "width": 0.5, "height": 0.5, "fontSize": 40},
    ]


@pytest_asyncio.fixture
async def app_context(test_settings: Settings, fake_blob_store: FakeBlobStore):
    """Started AppContext with a temp sqlite record store and the fake blob store"""
    context = create_context(test_settings, blob_store=fake_blob_store)
    await context.startup()
    yield context
    await context.shutdown()
