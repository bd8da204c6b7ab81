"""
Zone Model
"""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from memeplate.config.constants import (
    DEFAULT_FONT_COLOR,
    DEFAULT_FONT_SIZE,
    DEFAULT_TEXT_ALIGN,
    DEFAULT_VERTICAL_ALIGN,
)


class ZoneKind(str, Enum):
    """What gets painted into a zone"""

    TEXT = "text"
    IMAGE = "image"


class TextAlign(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class VerticalAlign(str, Enum):
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"


class Zone(BaseModel):
    """
    Rectangular text or image placeholder on a template image

    Geometry is stored as fractions of the image's pixel dimensions so a
    zone drawn on one canvas renders correctly on any other. Serialized
    with camelCase keys (fontSize, zIndex, ...); `type` is accepted as an
    input alias for `kind`.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )

    kind: ZoneKind = Field(validation_alias=AliasChoices("kind", "type"))
    x: float = Field(..., ge=0, le=1)
    y: float = Field(..., ge=0, le=1)
    width: float = Field(..., ge=0, le=1)
    height: float = Field(..., ge=0, le=1)

    # Text zones only
    font_size: Optional[int] = Field(default=None, gt=0)
    font_color: Optional[str] = None

    text_align: TextAlign = TextAlign(DEFAULT_TEXT_ALIGN)
    vertical_align: VerticalAlign = VerticalAlign(DEFAULT_VERTICAL_ALIGN)

    # Paint order; assigned from insertion index when absent
    z_index: Optional[int] = None

    @model_validator(mode="after")
    def _apply_kind_defaults(self) -> "Zone":
        if self.kind == ZoneKind.TEXT.value:
            if self.font_size is None:
                self.font_size = DEFAULT_FONT_SIZE
            if not self.font_color:
                self.font_color = DEFAULT_FONT_COLOR
        else:
            self.font_size = None
            self.font_color = None
        return self

    def to_dict(self) -> dict:
        """Serialize with wire (camelCase) keys"""
        return self.model_dump(by_alias=True)
