"""
SQLAlchemy Models Initialization
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker

# Create base class for models
Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the record store

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Engine bound to the URL
    """
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create session factory bound to engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """
    Initialize database by creating all tables
    """
    # Register tables on Base.metadata
    from memeplate.models import template  # noqa: F401

    Base.metadata.create_all(bind=engine)
