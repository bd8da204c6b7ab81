"""
Application Settings Configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal
import os


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(default="sqlite:///./data/templates.db")

    # Blob storage backend: "local" (static directory) or "s3" (S3-compatible bucket)
    blob_backend: Literal["local", "s3"] = Field(default="local")

    # Local static storage
    static_root: str = Field(default="./data/static")
    static_template_subdir: str = Field(default="templates")
    static_template_dir: str = ""
    static_url_prefix: str = "/static"

    # S3-compatible object storage (R2, MinIO, AWS)
    s3_bucket: str = Field(default="")
    s3_endpoint_url: str = Field(default="")
    s3_access_key: str = Field(default="")
    s3_secret_key: str = Field(default="")
    s3_region: str = Field(default="auto")
    s3_key_prefix: str = Field(default="meme-templates")
    s3_public_base_url: str = Field(default="")

    # Uploads
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, gt=0)

    # Zones must stay inside the image (x + width <= 1, y + height <= 1)
    enforce_zone_bounds: bool = Field(default=True)

    # Reconciliation only purges orphans older than this; younger ones may be
    # uploads whose record insert has not committed yet
    orphan_grace_seconds: int = Field(default=3600, ge=0)

    # HTTP
    allowed_origins: List[str] = Field(default=["*"])

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.static_template_dir:
            self.static_template_dir = os.path.join(self.static_root, self.static_template_subdir)


# Global settings instance
settings = Settings()
