"""Shared error taxonomy and per-provider failure normalization."""

import asyncio
import logging

import httpx
from minio.error import S3Error

from storefront_media.enums import ErrorKind, Provider

logger = logging.getLogger(__name__)

# kind → HTTP status used when an error leaves through the API
STATUS_FOR_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation_failed: 400,
    ErrorKind.no_file: 400,
    ErrorKind.unauthorized: 401,
    ErrorKind.file_too_large: 413,
    ErrorKind.rate_limit: 429,
    ErrorKind.upload_failed: 400,
    ErrorKind.no_url: 502,
    ErrorKind.timeout: 504,
    ErrorKind.canceled: 499,
    ErrorKind.not_found: 404,
    ErrorKind.internal_error: 500,
}

# MinIO / S3 error code → kind
S3_CODE_KINDS: dict[str, ErrorKind] = {
    "AccessDenied": ErrorKind.unauthorized,
    "InvalidAccessKeyId": ErrorKind.unauthorized,
    "SignatureDoesNotMatch": ErrorKind.unauthorized,
    "NoSuchKey": ErrorKind.not_found,
    "NoSuchBucket": ErrorKind.not_found,
    "EntityTooLarge": ErrorKind.file_too_large,
    "SlowDown": ErrorKind.rate_limit,
    "TooManyRequests": ErrorKind.rate_limit,
    "RequestTimeout": ErrorKind.timeout,
}


class MediaError(Exception):
    """A failure expressed in the shared ErrorKind vocabulary."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        raw_code: str | None = None,
        provider: Provider | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.raw_code = raw_code
        self.provider = provider

    @property
    def status_code(self) -> int:
        return STATUS_FOR_KIND[self.kind]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}, {self.message!r}, raw_code={self.raw_code!r})"


class ValidationError(MediaError):
    """A file failed a local constraint; raised before any network call."""

    def __init__(self, message: str, raw_code: str | None = None):
        super().__init__(ErrorKind.validation_failed, message, raw_code=raw_code)


class UploadCanceled(MediaError):
    def __init__(self, message: str = "Upload was canceled", provider: Provider | None = None):
        super().__init__(ErrorKind.canceled, message, provider=provider)


def kind_for_status(status: int) -> ErrorKind:
    """Map an HTTP status from a provider or the relay to an ErrorKind."""
    if status in (401, 403):
        return ErrorKind.unauthorized
    if status == 404:
        return ErrorKind.not_found
    if status in (408, 504):
        return ErrorKind.timeout
    if status == 413:
        return ErrorKind.file_too_large
    if status == 429:
        return ErrorKind.rate_limit
    if status >= 400:
        return ErrorKind.upload_failed
    return ErrorKind.internal_error


def kind_for_code(code: str | None) -> ErrorKind | None:
    """Map a relay envelope error code; None when the code is unknown."""
    if not code:
        return None
    if code == "NO_API_KEY":
        return ErrorKind.internal_error
    try:
        return ErrorKind(code)
    except ValueError:
        return None


def normalize_http_error(exc: Exception, provider: Provider | None = None) -> MediaError:
    """Normalize an httpx or asyncio failure from an HTTP provider."""
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return MediaError(
            ErrorKind.timeout,
            "Upload timed out. Please check your connection and try again",
            raw_code=type(exc).__name__,
            provider=provider,
        )
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return MediaError(
            kind_for_status(status),
            f"Provider responded with HTTP {status}",
            raw_code=str(status),
            provider=provider,
        )
    if isinstance(exc, httpx.HTTPError):
        return MediaError(
            ErrorKind.internal_error,
            f"Network error while contacting provider: {exc}",
            raw_code=type(exc).__name__,
            provider=provider,
        )
    return MediaError(ErrorKind.internal_error, str(exc) or type(exc).__name__, provider=provider)


def normalize_storage_error(exc: Exception) -> MediaError:
    """Normalize a MinIO client failure."""
    provider = Provider.resumable_storage
    if isinstance(exc, S3Error):
        kind = S3_CODE_KINDS.get(exc.code, ErrorKind.upload_failed)
        return MediaError(kind, exc.message or str(exc), raw_code=exc.code, provider=provider)
    return MediaError(ErrorKind.internal_error, str(exc) or type(exc).__name__, provider=provider)


def normalize(exc: Exception, provider: Provider | None = None) -> MediaError:
    """Single entry point: any adapter failure → MediaError."""
    if isinstance(exc, MediaError):
        if exc.provider is None:
            exc.provider = provider
        return exc
    if isinstance(exc, S3Error):
        return normalize_storage_error(exc)
    if isinstance(exc, (asyncio.TimeoutError, httpx.HTTPError)):
        return normalize_http_error(exc, provider)
    logger.error("Unclassified %s failure: %r", provider.value if provider else "media", exc)
    return MediaError(
        ErrorKind.internal_error,
        str(exc) or "Failed to upload image",
        raw_code=type(exc).__name__,
        provider=provider,
    )
