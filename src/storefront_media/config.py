from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront_media.enums import Provider


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Legacy direct host (ImgBB), kept for previously uploaded references
    legacy_api_key: str = Field(default="")
    legacy_upload_url: str = Field(default="https://api.imgbb.com/1/upload")

    # Relay endpoint (client side) and its upstream host (server side)
    relay_url: str = Field(default="http://localhost:8000/api/upload")
    relay_upstream_url: str = Field(default="https://freeimage.host/api/1/upload")
    relay_upstream_api_key: str = Field(default="")

    # MinIO / S3 resumable storage
    minio_endpoint: str = Field(default="minio:9000")
    minio_access_key: str = Field(default="minioadmin")
    minio_secret_key: str = Field(default="minioadmin123")
    minio_bucket: str = Field(default="media")
    minio_use_ssl: bool = Field(default=False)
    storage_public_base_url: str = Field(default="")
    signed_url_expiry_minutes: int = Field(default=60 * 24 * 7)
    upload_part_size_mb: int = Field(default=5)

    # Upload limits
    max_file_size_mb: int = Field(default=50)
    max_batch_files: int = Field(default=50)
    allowed_mime_types: list[str] = Field(default=[
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        "image/bmp",
        "image/avif",
        "image/heic",
        "image/heif",
    ])
    allowed_extensions: list[str] = Field(default=[
        ".jpg", ".jpeg", ".png", ".gif", ".webp",
        ".svg", ".bmp", ".avif", ".heic", ".heif",
    ])

    # Network
    request_timeout_seconds: float = Field(default=60)

    # App
    default_provider: Provider = Field(default=Provider.resumable_storage)
    log_level: str = Field(default="INFO")

    @field_validator("default_provider")
    @classmethod
    def _not_legacy(cls, value: Provider) -> Provider:
        if value == Provider.legacy_direct:
            raise ValueError("legacy_direct can be selected per upload but not as the default provider")
        return value


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
