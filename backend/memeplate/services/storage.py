"""
Storage Service - Database operations for Templates
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from memeplate.core.errors import RecordReloadError, RecordStoreError
from memeplate.models.template import TemplateModel, TemplateTagModel


@contextmanager
def _store_call(db: Session, action: str) -> Iterator[None]:
    """Roll back and re-raise database failures as RecordStoreError"""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        raise RecordStoreError(f"Failed to {action}: {e}") from e


def _reload(db: Session, template: TemplateModel, action: str) -> None:
    """Refresh a row whose write is already committed"""
    try:
        db.refresh(template)
    except SQLAlchemyError as e:
        db.rollback()
        raise RecordReloadError(f"Saved template but failed to reload it after {action}: {e}") from e


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TemplateDB:
    """
    Template database operations

    The store accepts already-validated entities and offers no
    compare-and-swap; concurrent writers to one template are
    last-write-wins.
    """

    @staticmethod
    def _filtered_query(
        db: Session,
        category: Optional[str] = None,
        search: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> Query:
        query = db.query(TemplateModel)
        if category:
            query = query.filter(TemplateModel.category == category)
        if search:
            query = query.filter(TemplateModel.name.ilike(f"%{_escape_like(search)}%", escape="\\"))
        if tags:
            query = query.filter(TemplateModel.tag_rows.any(TemplateTagModel.tag.in_(list(tags))))
        return query

    @staticmethod
    def get_template(db: Session, template_id: str) -> Optional[TemplateModel]:
        """Get template by public ID"""
        with _store_call(db, "load template"):
            return (
                db.query(TemplateModel)
                .filter(TemplateModel.template_id == template_id)
                .first()
            )

    @staticmethod
    def list_templates(
        db: Session,
        category: Optional[str] = None,
        search: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TemplateModel]:
        """
        List templates newest first

        Args:
            db: Database session
            category: Exact category match
            search: Case-insensitive substring of name
            tags: Keep templates carrying any of these tags
            limit: Max rows (None for all)
            offset: Rows to skip

        Returns:
            Templates ordered by created_at desc, id desc
        """
        with _store_call(db, "list templates"):
            query = (
                TemplateDB._filtered_query(db, category, search, tags)
                .order_by(TemplateModel.created_at.desc(), TemplateModel.id.desc())
                .offset(offset)
            )
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    @staticmethod
    def count_templates(
        db: Session,
        category: Optional[str] = None,
        search: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> int:
        """Count templates matching the same filters as list_templates"""
        with _store_call(db, "count templates"):
            return TemplateDB._filtered_query(db, category, search, tags).count()

    @staticmethod
    def insert_template(db: Session, template: TemplateModel) -> TemplateModel:
        """Insert a new template"""
        if not template.template_id:
            template.template_id = TemplateModel.generate_template_id()
        if template.usage_count is None:
            template.usage_count = 0
        with _store_call(db, "insert template"):
            db.add(template)
            db.commit()
        _reload(db, template, "insert")
        return template

    @staticmethod
    def replace_template(db: Session, template: TemplateModel) -> TemplateModel:
        """Persist all pending changes on a loaded template"""
        with _store_call(db, "save template"):
            template.updated_at = datetime.utcnow()
            db.add(template)
            db.commit()
        _reload(db, template, "save")
        return template

    @staticmethod
    def remove_template(db: Session, template_id: str) -> bool:
        """Delete a template"""
        template = TemplateDB.get_template(db, template_id)
        if not template:
            return False
        with _store_call(db, "delete template"):
            db.delete(template)
            db.commit()
        return True

    @staticmethod
    def increment_usage(db: Session, template_id: str) -> Optional[TemplateModel]:
        """Atomically add one to usage_count"""
        with _store_call(db, "increment usage count"):
            result = db.execute(
                update(TemplateModel)
                .where(TemplateModel.template_id == template_id)
                .values(usage_count=TemplateModel.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        if result.rowcount == 0:
            return None

        template = TemplateDB.get_template(db, template_id)
        if template is not None:
            _reload(db, template, "usage increment")
        return template

    @staticmethod
    def list_asset_keys(db: Session) -> List[Tuple[str, str]]:
        """(template_id, storage_key) for every template"""
        with _store_call(db, "list storage keys"):
            rows = db.query(TemplateModel.template_id, TemplateModel.asset_storage_key).all()
        return [(template_id, storage_key) for template_id, storage_key in rows]
