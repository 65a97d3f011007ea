"""Value types passed across the media subsystem boundary."""

import base64
import binascii
import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from storefront_media.enums import Constraint, ErrorKind, Provider
from storefront_media.errors import MediaError, UploadCanceled, ValidationError

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*),(?P<payload>.*)$", re.DOTALL)


class UploadRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_bytes: bytes = Field(repr=False)
    file_name: str
    mime_type: str
    size_bytes: int = -1  # -1 → len(file_bytes)
    destination_folder: str = "media"
    custom_name: str | None = None
    provider: Provider | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_size(cls, data):
        if isinstance(data, dict) and data.get("size_bytes") in (None, -1):
            data = {**data, "size_bytes": len(data.get("file_bytes") or b"")}
        return data

    @classmethod
    def from_data_url(cls, data_url: str, file_name: str, **kwargs) -> "UploadRequest":
        """Build a request from a ``data:<mime>;base64,<payload>`` URL."""
        from storefront_media.naming import sanitize_filename

        match = _DATA_URL_RE.match(data_url.strip())
        if match is None or ";base64" not in (match.group("params") or ""):
            raise MediaError(ErrorKind.no_file, "Not a base64 data URL")
        try:
            payload = base64.b64decode(match.group("payload"), validate=True)
        except binascii.Error as exc:
            raise MediaError(ErrorKind.no_file, "Data URL payload is not valid base64") from exc
        return cls(
            file_bytes=payload,
            file_name=sanitize_filename(file_name),
            mime_type=match.group("mime") or "application/octet-stream",
            **kwargs,
        )

    @property
    def destination_folder_clean(self) -> str:
        from storefront_media.naming import sanitize_folder

        return sanitize_folder(self.destination_folder)


class Violation(BaseModel):
    constraint: Constraint
    reason: str


class ValidationOutcome(BaseModel):
    valid: bool
    violations: list[Violation] = []

    @property
    def first_reason(self) -> str | None:
        return self.violations[0].reason if self.violations else None


class GeneratedName(BaseModel):
    base_name: str
    sanitized_original_name: str
    uniquing_suffix: str = ""
    extension: str = ""

    @property
    def filename(self) -> str:
        if self.uniquing_suffix:
            return f"{self.base_name}_{self.uniquing_suffix}{self.extension}"
        return f"{self.base_name}{self.extension}"


class ProgressEvent(BaseModel):
    bytes_transferred: int
    total_bytes: int
    fraction_complete: float


class UploadResult(BaseModel):
    """Either a stored image or a normalized failure, never both."""

    success: bool
    provider: Provider | None = None

    # success
    remote_id: str | None = None
    primary_url: str | None = None
    secondary_urls: dict[str, str] = {}
    size_bytes: int | None = None
    mime_type: str | None = None
    created_at: datetime | None = None
    path: str | None = None
    delete_url: str | None = None

    # failure
    error_kind: ErrorKind | None = None
    message: str | None = None
    provider_raw_code: str | None = None

    @model_validator(mode="after")
    def _one_side_only(self) -> "UploadResult":
        success_side = self.primary_url is not None or self.remote_id is not None
        error_side = self.error_kind is not None or self.message is not None
        if self.success:
            if not self.primary_url or error_side:
                raise ValueError("successful result needs a primary_url and no error fields")
        elif success_side or self.error_kind is None:
            raise ValueError("failed result needs an error_kind and no success fields")
        return self

    @classmethod
    def ok(
        cls,
        provider: Provider,
        remote_id: str,
        primary_url: str,
        size_bytes: int,
        mime_type: str,
        created_at: datetime,
        secondary_urls: dict[str, str] | None = None,
        path: str | None = None,
        delete_url: str | None = None,
    ) -> "UploadResult":
        return cls(
            success=True,
            provider=provider,
            remote_id=remote_id,
            primary_url=primary_url,
            secondary_urls={k: v for k, v in (secondary_urls or {}).items() if v},
            size_bytes=size_bytes,
            mime_type=mime_type,
            created_at=created_at,
            path=path,
            delete_url=delete_url,
        )

    @classmethod
    def failure(cls, error: MediaError, provider: Provider | None = None) -> "UploadResult":
        return cls(
            success=False,
            provider=provider or error.provider,
            error_kind=error.kind,
            message=error.message,
            provider_raw_code=error.raw_code,
        )

    def raise_for_error(self) -> "UploadResult":
        if self.success:
            return self
        if self.error_kind == ErrorKind.validation_failed:
            raise ValidationError(self.message or "Validation failed", raw_code=self.provider_raw_code)
        if self.error_kind == ErrorKind.canceled:
            raise UploadCanceled(self.message or "Upload was canceled", provider=self.provider)
        raise MediaError(
            self.error_kind,
            self.message or self.error_kind.value,
            raw_code=self.provider_raw_code,
            provider=self.provider,
        )


class StorageRef(BaseModel):
    path: str
    name: str


class StorageListing(BaseModel):
    files: list[StorageRef] = []
    folders: list[StorageRef] = []


class StoredObject(BaseModel):
    path: str
    url: str
    size_bytes: int | None = None
    mime_type: str | None = None
    updated_at: datetime | None = None
