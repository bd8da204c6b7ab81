"""
Application Constants Configuration
"""

from typing import Dict


# Accepted template image formats (content type -> file extension)
ALLOWED_IMAGE_TYPES: Dict[str, str] = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

# Zone drawing: drags smaller than this (canvas pixels) are discarded as accidental clicks
MIN_ZONE_PIXELS: int = 10

# Tolerance for the x + width <= 1 / y + height <= 1 bound
ZONE_BOUNDS_EPSILON: float = 1e-9

# Text zone defaults
DEFAULT_FONT_SIZE: int = 32
DEFAULT_FONT_COLOR: str = "#ffffff"
DEFAULT_TEXT_ALIGN: str = "center"
DEFAULT_VERTICAL_ALIGN: str = "middle"

# Template defaults
DEFAULT_CATEGORY: str = "general"

# Listing
DEFAULT_PAGE_LIMIT: int = 50
MAX_PAGE_LIMIT: int = 500
