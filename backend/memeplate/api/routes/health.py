"""
Health API Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from memeplate import __version__
from memeplate.api.dependencies import get_context
from memeplate.context import AppContext


router = APIRouter()


@router.get("/health")
async def health_check(context: AppContext = Depends(get_context)):
    """
    Health check endpoint

    Returns:
        JSON response with record store and blob backend status
    """
    try:
        with context.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError:
        database = "disconnected"

    return {
        "success": database == "connected",
        "message": "Meme Template API is running",
        "version": __version__,
        "database": database,
        "blob_backend": context.blob_store.name,
    }
