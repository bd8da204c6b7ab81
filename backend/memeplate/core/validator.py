"""
Validator - Field validation for templates, zones, and uploaded assets
"""

import json
import mimetypes
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from memeplate.config.constants import ALLOWED_IMAGE_TYPES, DEFAULT_CATEGORY, ZONE_BOUNDS_EPSILON
from memeplate.core.errors import ValidationError
from memeplate.models.template import TemplateDraft, TemplatePatch
from memeplate.models.zone import Zone


@dataclass
class ValidationResult:
    """Outcome of a non-raising check"""

    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AssetUpload:
    """Raw bytes of an uploaded image plus its declared content type"""

    data: bytes
    content_type: str
    filename: Optional[str] = None

    @property
    def extension(self) -> str:
        return ALLOWED_IMAGE_TYPES.get(self.content_type, "bin")


def coerce_int(value: Any) -> Optional[int]:
    """parseInt-style coercion: leading digits win, anything else is None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = re.match(r"\s*(-?\d+)", value)
        if match:
            return int(match.group(1))
    return None


def decode_json_field(value: Any, field_name: str) -> Any:
    """
    Decode a multipart form field that may carry JSON

    Strings are parsed as JSON; anything else is returned unchanged.
    """
    if not isinstance(value, str):
        return value
    if not value.strip():
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{field_name} must be valid JSON: {e.msg}")


def parse_tag_query(raw: Optional[str]) -> List[str]:
    """Split "a, b,c" into ["a", "b", "c"]; empty entries are dropped"""
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def check_zone_bounds(zones: List[Zone]) -> ValidationResult:
    """Check every zone stays inside the image"""
    errors = []
    for idx, zone in enumerate(zones):
        if zone.x + zone.width > 1 + ZONE_BOUNDS_EPSILON:
            errors.append(f"Zone {idx}: x + width exceeds image width ({zone.x + zone.width:.4f} > 1)")
        if zone.y + zone.height > 1 + ZONE_BOUNDS_EPSILON:
            errors.append(f"Zone {idx}: y + height exceeds image height ({zone.y + zone.height:.4f} > 1)")
    return ValidationResult(is_valid=not errors, errors=errors)


class TemplateValidator:
    """
    Validate template fields before they reach the record store
    """

    def __init__(self, enforce_zone_bounds: bool = True, max_upload_bytes: Optional[int] = None):
        self.enforce_zone_bounds = enforce_zone_bounds
        self.max_upload_bytes = max_upload_bytes

    def validate_name(self, name: Any) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Template name is required")
        return name.strip()

    def validate_category(self, category: Any) -> str:
        if category is None:
            return DEFAULT_CATEGORY
        if not isinstance(category, str):
            raise ValidationError("category must be a string")
        return category.strip() or DEFAULT_CATEGORY

    def validate_dimension(self, value: Any, field_name: str) -> Optional[int]:
        coerced = coerce_int(value)
        if coerced is None or coerced == 0:
            return None
        if coerced < 0:
            raise ValidationError(f"{field_name} must be a positive integer")
        return coerced

    def validate_tags(self, raw: Any) -> List[str]:
        """Tags are stored as given; only tag filters in queries are trimmed"""
        tags = decode_json_field(raw, "tags")
        if tags is None:
            return []
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise ValidationError("tags must be a list of strings")
        return list(tags)

    def validate_zones(self, raw: Any) -> List[Zone]:
        """
        Parse and validate a zone list

        Zones without a zIndex get their position in the list.
        """
        zones_data = decode_json_field(raw, "zones")
        if zones_data is None:
            return []
        if not isinstance(zones_data, list):
            raise ValidationError("zones must be a list")

        zones: List[Zone] = []
        for idx, item in enumerate(zones_data):
            if isinstance(item, Zone):
                zone = item
            else:
                try:
                    zone = Zone.model_validate(item)
                except PydanticValidationError as e:
                    details = "; ".join(
                        f"{'.'.join(str(p) for p in err['loc']) or 'zone'}: {err['msg']}"
                        for err in e.errors()
                    )
                    raise ValidationError(f"Invalid zone at index {idx}: {details}")
            if zone.z_index is None:
                zone = zone.model_copy(update={"z_index": idx})
            zones.append(zone)

        if self.enforce_zone_bounds:
            result = check_zone_bounds(zones)
            if not result.is_valid:
                raise ValidationError("; ".join(result.errors))

        return zones

    def validate_asset(self, asset: Optional[AssetUpload]) -> AssetUpload:
        """
        Check an uploaded image before it is sent to the blob store

        Raises:
            ValidationError: No file, empty file, unsupported type or too large
        """
        if asset is None:
            raise ValidationError("No image file uploaded")
        if not asset.data:
            raise ValidationError("Uploaded image is empty")

        content_type = (asset.content_type or "").lower()
        if content_type not in ALLOWED_IMAGE_TYPES and asset.filename:
            guessed, _ = mimetypes.guess_type(asset.filename)
            content_type = (guessed or "").lower()
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationError(
                f"Unsupported image type '{asset.content_type}'. "
                f"Allowed: {', '.join(sorted(set(ALLOWED_IMAGE_TYPES.values())))}"
            )

        if self.max_upload_bytes is not None and len(asset.data) > self.max_upload_bytes:
            raise ValidationError(
                f"Image is too large ({len(asset.data)} bytes, limit {self.max_upload_bytes})"
            )

        if content_type != asset.content_type:
            return AssetUpload(data=asset.data, content_type=content_type, filename=asset.filename)
        return asset

    def validate_draft(
        self,
        name: Any,
        zones: Any = None,
        tags: Any = None,
        category: Any = None,
        pixel_width: Any = None,
        pixel_height: Any = None,
    ) -> TemplateDraft:
        """Validate the fields of a new template"""
        return TemplateDraft(
            name=self.validate_name(name),
            pixel_width=self.validate_dimension(pixel_width, "width"),
            pixel_height=self.validate_dimension(pixel_height, "height"),
            zones=self.validate_zones(zones),
            tags=self.validate_tags(tags),
            category=self.validate_category(category),
        )

    def _is_present(self, value: Any) -> bool:
        if value is None:
            return False
        return not (isinstance(value, str) and not value.strip())

    def validate_patch(
        self,
        name: Any = None,
        zones: Any = None,
        tags: Any = None,
        category: Any = None,
        pixel_width: Any = None,
        pixel_height: Any = None,
    ) -> TemplatePatch:
        """Validate an update; absent (None) fields stay absent"""
        return TemplatePatch(
            name=self.validate_name(name) if name is not None else None,
            pixel_width=self.validate_dimension(pixel_width, "width"),
            pixel_height=self.validate_dimension(pixel_height, "height"),
            zones=self.validate_zones(zones) if self._is_present(zones) else None,
            tags=self.validate_tags(tags) if self._is_present(tags) else None,
            category=self.validate_category(category) if self._is_present(category) else None,
        )
