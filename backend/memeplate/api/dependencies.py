"""
Shared FastAPI dependencies
"""

from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from memeplate.context import AppContext
from memeplate.services.lifecycle import AssetLifecycleCoordinator
from memeplate.services.observability import logger
from memeplate.services.query import QueryService


def get_context(request: Request) -> AppContext:
    """
    Get the application context from app state

    Raises:
        HTTPException: If the app was built without a context
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        logger.error("context_not_initialized", path=request.url.path)
        raise HTTPException(status_code=500, detail="Internal server error: context not initialized")
    return context


def get_db(context: AppContext = Depends(get_context)) -> Generator[Session, None, None]:
    """
    Dependency function to get database session

    Yields:
        Session: SQLAlchemy database session
    """
    db = context.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_coordinator(
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> AssetLifecycleCoordinator:
    return AssetLifecycleCoordinator(db=db, blob_store=context.blob_store, validator=context.validator)


def get_query_service(db: Session = Depends(get_db)) -> QueryService:
    return QueryService(db)
