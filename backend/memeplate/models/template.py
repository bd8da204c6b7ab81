"""
Template Model
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from memeplate.config.constants import DEFAULT_CATEGORY
from memeplate.models import Base
from memeplate.models.zone import Zone


class AssetRef(BaseModel):
    """
    Pointer to the live blob behind a template

    `url` is what clients fetch; `storage_key` is the provider handle
    needed to replace or delete the blob.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    url: str
    storage_key: str


class TemplateDraft(BaseModel):
    """Validated fields for a new template (everything except the asset)"""

    name: str
    pixel_width: Optional[int] = None
    pixel_height: Optional[int] = None
    zones: List[Zone] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    category: str = DEFAULT_CATEGORY


class TemplatePatch(BaseModel):
    """Field-level update; None means leave the stored value unchanged"""

    name: Optional[str] = None
    pixel_width: Optional[int] = None
    pixel_height: Optional[int] = None
    zones: Optional[List[Zone]] = None
    tags: Optional[List[str]] = None
    category: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class TemplateTagModel(Base):
    """One tag on a template; position keeps duplicates and input order"""

    __tablename__ = "template_tags"

    id = Column(Integer, primary_key=True, index=True)
    template_pk = Column(Integer, ForeignKey("templates.id", ondelete="CASCADE"), nullable=False, index=True)
    tag = Column(String, nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)


class TemplateModel(Base):
    """
    Meme Template - Image asset plus the zones where text/images get placed
    """

    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, index=True)

    # Public identifier
    template_id = Column(String, nullable=False, unique=True, index=True)

    name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=False, default=DEFAULT_CATEGORY, index=True)

    # Asset reference; both columns always describe the same live blob
    asset_url = Column(String, nullable=False)
    asset_storage_key = Column(String, nullable=False, index=True)

    # Natural image size
    pixel_width = Column(Integer, nullable=True)
    pixel_height = Column(Integer, nullable=True)

    zones = Column(JSON, nullable=False, default=list)  # [{"kind": "text", "x": 0.1, ...}]
    usage_count = Column(Integer, nullable=False, default=0)

    tag_rows = relationship(
        "TemplateTagModel",
        cascade="all, delete-orphan",
        order_by="TemplateTagModel.position",
        lazy="selectin",
    )

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @staticmethod
    def generate_template_id() -> str:
        return uuid.uuid4().hex

    @property
    def tags(self) -> List[str]:
        return [row.tag for row in self.tag_rows]

    def set_tags(self, tags: List[str]) -> None:
        self.tag_rows = [
            TemplateTagModel(tag=tag, position=position)
            for position, tag in enumerate(tags)
        ]

    @property
    def asset_ref(self) -> AssetRef:
        return AssetRef(url=self.asset_url, storage_key=self.asset_storage_key)

    def set_asset(self, asset: AssetRef) -> None:
        self.asset_url = asset.url
        self.asset_storage_key = asset.storage_key

    def zone_models(self) -> List[Zone]:
        return [Zone.model_validate(zone) for zone in (self.zones or [])]

    def to_dict(self) -> dict:
        """Convert template model to dictionary"""
        return {
            "id": self.template_id,
            "name": self.name,
            "assetRef": self.asset_ref.model_dump(by_alias=True),
            "pixelWidth": self.pixel_width,
            "pixelHeight": self.pixel_height,
            "zones": list(self.zones or []),
            "tags": self.tags,
            "category": self.category,
            "usageCount": self.usage_count or 0,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
