"""
Application Context - Explicitly wired collaborators with startup/shutdown
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from memeplate.config.settings import Settings
from memeplate.core.validator import TemplateValidator
from memeplate.models import build_engine, build_session_factory, init_db
from memeplate.services.blob_store import BlobStore, LocalBlobStore, create_blob_store
from memeplate.services.observability import logger


@dataclass
class AppContext:
    """
    Everything a request needs, built once per process

    Nothing here is a module-level singleton; the app receives a context
    at construction and tests build their own.
    """

    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    blob_store: BlobStore
    validator: TemplateValidator
    started: bool = False

    async def startup(self) -> None:
        """Create tables and prepare the blob store (idempotent)"""
        if self.started:
            return
        database = self.engine.url.database
        if self.engine.url.get_backend_name() == "sqlite" and database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        init_db(self.engine)
        if isinstance(self.blob_store, LocalBlobStore):
            self.blob_store.ensure_directories()
        self.started = True
        logger.info(
            "context_started",
            database=self.engine.url.render_as_string(hide_password=True),
            blob_backend=self.blob_store.name,
        )

    async def shutdown(self) -> None:
        """Close the blob store and dispose the engine"""
        await self.blob_store.close()
        self.engine.dispose()
        self.started = False
        logger.info("context_stopped")


def create_context(settings: Settings, blob_store: Optional[BlobStore] = None) -> AppContext:
    """
    Build an AppContext from settings

    Args:
        settings: Application settings
        blob_store: Override the provider selected by settings.blob_backend

    Returns:
        AppContext (not yet started)
    """
    engine = build_engine(settings.database_url)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=build_session_factory(engine),
        blob_store=blob_store or create_blob_store(settings),
        validator=TemplateValidator(
            enforce_zone_bounds=settings.enforce_zone_bounds,
            max_upload_bytes=settings.max_upload_bytes,
        ),
    )
