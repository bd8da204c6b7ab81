"""
Query Service - Read-side listing, search, and random pick over templates
"""

import math
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from memeplate.config.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from memeplate.core.errors import NotFoundError, ValidationError
from memeplate.core.validator import parse_tag_query
from memeplate.models.template import TemplateModel
from memeplate.services.storage import TemplateDB


@dataclass
class TemplatePage:
    """One page of templates plus the numbers a paginator needs"""

    items: List[TemplateModel]
    total: int
    limit: int
    skip: int

    @property
    def page(self) -> int:
        return self.skip // self.limit + 1

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


class QueryService:
    """
    Read operations over the template record store
    """

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        """
        Args:
            db: Record store session
            rng: Random source for random_template (seedable in tests)
        """
        self.db = db
        self.rng = rng or random.Random()

    def get_template(self, template_id: str) -> TemplateModel:
        template = TemplateDB.get_template(self.db, template_id)
        if template is None:
            raise NotFoundError(template_id)
        return template

    def list_templates(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        skip: int = 0,
    ) -> TemplatePage:
        """
        List templates newest first with pagination totals

        Raises:
            ValidationError: limit < 1 or skip < 0
        """
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        if skip < 0:
            raise ValidationError("skip must not be negative")
        limit = min(limit, MAX_PAGE_LIMIT)

        items = TemplateDB.list_templates(
            self.db,
            category=category or None,
            search=search or None,
            limit=limit,
            offset=skip,
        )
        total = TemplateDB.count_templates(self.db, category=category or None, search=search or None)
        return TemplatePage(items=items, total=total, limit=limit, skip=skip)

    def by_category(self, category: str) -> List[TemplateModel]:
        """All templates in a category, newest first"""
        return TemplateDB.list_templates(self.db, category=category)

    def search_by_tags(self, tags: Union[str, Sequence[str], None]) -> List[TemplateModel]:
        """
        Templates carrying at least one of the given tags

        Args:
            tags: "a,b" query string or a list; matching is exact and
                case-sensitive. No tags matches nothing.
        """
        tag_list = parse_tag_query(tags) if isinstance(tags, str) or tags is None else list(tags)
        if not tag_list:
            return []
        return TemplateDB.list_templates(self.db, tags=tag_list)

    def random_template(self) -> Optional[TemplateModel]:
        """
        Pick one template uniformly at random

        Draws an index in [0, count) and fetches the row at that offset
        under the stable newest-first order.

        Returns:
            A template, or None when the store is empty
        """
        count = TemplateDB.count_templates(self.db)
        if count == 0:
            return None

        index = self.rng.randrange(count)
        rows = TemplateDB.list_templates(self.db, limit=1, offset=index)
        return rows[0] if rows else None
