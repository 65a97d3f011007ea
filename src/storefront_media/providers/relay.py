"""Relay-mediated uploads.

The browser-facing side (``RelayUploadAdapter``) posts the base64-encoded
file to our own relay endpoint; the relay (``forward_upload``) re-posts it
to the upstream host with a server-held API key, so the key never leaves
the server. The upstream (Chevereto / freeimage.host) is not consistent
about where it puts status and URLs, hence the ordered field lookups.
"""

import asyncio
import base64
import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel

from storefront_media.enums import ErrorKind, Provider
from storefront_media.errors import MediaError, kind_for_code, kind_for_status, normalize_http_error
from storefront_media.naming import split_extension
from storefront_media.providers.base import FieldPath, ProviderAdapter, first_populated
from storefront_media.schemas import UploadRequest, UploadResult

logger = logging.getLogger(__name__)

STATUS_CODE_FIELDS = ("status_code", "status")

DISPLAY_URL_PATHS: list[FieldPath] = [
    ("display_url",),
    ("url",),
    ("image", "url"),
    ("medium", "url"),
]
THUMBNAIL_URL_PATHS: list[FieldPath] = [("thumb", "url"), ("thumbnail", "url")]
MEDIUM_URL_PATHS: list[FieldPath] = [("medium", "url")]
ID_PATHS: list[FieldPath] = [("id_encoded",), ("id",)]
FILENAME_PATHS: list[FieldPath] = [("filename",), ("image", "filename"), ("original_filename",)]
MIME_PATHS: list[FieldPath] = [("mime",), ("image", "mime"), ("mime_type",)]
SIZE_PATHS: list[FieldPath] = [("size",), ("image", "size")]

# upstream statuses the relay passes through as-is
PASSTHROUGH_STATUSES = (401, 403, 413, 429)


class RelayImage(BaseModel):
    id: str | None = None
    url: str | None = None
    display_url: str | None = None
    thumbnail_url: str | None = None
    medium_url: str | None = None
    delete_url: str | None = None
    filename: str | None = None
    size: int | None = None
    width: int | None = None
    height: int | None = None
    mime_type: str | None = None


class RelayError(BaseModel):
    code: str
    message: str
    upstream_code: str | None = None


class RelayEnvelope(BaseModel):
    success: bool
    data: RelayImage | None = None
    error: RelayError | None = None


def _numeric_status(payload: dict[str, Any]) -> int | None:
    for field in STATUS_CODE_FIELDS:
        value = payload.get(field)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def upstream_succeeded(payload: dict[str, Any]) -> bool:
    """A numeric 2xx status under either field name, or status_txt "OK".

    A numeric non-2xx status is a failure even if status_txt says otherwise.
    """
    status = _numeric_status(payload)
    if status is not None:
        return 200 <= status < 300
    return str(payload.get("status_txt", "")).strip().upper() == "OK"


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_upstream_response(payload: Any) -> RelayImage:
    """Turn an upstream response body into a RelayImage or raise MediaError."""
    if not isinstance(payload, dict):
        raise MediaError(
            ErrorKind.upload_failed,
            "Upstream returned an unreadable response",
            provider=Provider.relay,
        )

    if not upstream_succeeded(payload):
        error = payload.get("error") if isinstance(payload.get("error"), dict) else {}
        status = _numeric_status(payload)
        raw_code = error.get("code") or status or payload.get("status_txt")
        raise MediaError(
            ErrorKind.upload_failed,
            error.get("message") or "Failed to upload image",
            raw_code=str(raw_code) if raw_code is not None else None,
            provider=Provider.relay,
        )

    image = payload.get("image") if isinstance(payload.get("image"), dict) else {}
    display_url = first_populated(image, DISPLAY_URL_PATHS)
    if not display_url:
        raise MediaError(
            ErrorKind.no_url,
            "Upstream reported success but no image URL was found",
            provider=Provider.relay,
        )

    return RelayImage(
        id=str(first_populated(image, ID_PATHS) or display_url),
        url=first_populated(image, [("url",), ("image", "url")]) or display_url,
        display_url=display_url,
        thumbnail_url=first_populated(image, THUMBNAIL_URL_PATHS),
        medium_url=first_populated(image, MEDIUM_URL_PATHS),
        delete_url=image.get("delete_url") or None,
        filename=first_populated(image, FILENAME_PATHS),
        size=_as_int(first_populated(image, SIZE_PATHS)),
        width=_as_int(image.get("width")),
        height=_as_int(image.get("height")),
        mime_type=first_populated(image, MIME_PATHS),
    )


async def forward_upload(
    http: httpx.AsyncClient,
    upstream_url: str,
    api_key: str,
    source_b64: str,
    name: str | None = None,
    timeout: float = 60,
) -> RelayImage:
    """Server side of the relay: post to the upstream host with our key."""
    if not api_key:
        raise MediaError(
            ErrorKind.internal_error,
            "Upload relay is not configured with an API key",
            raw_code="NO_API_KEY",
            provider=Provider.relay,
        )

    form = {"key": api_key, "action": "upload", "source": source_b64, "format": "json"}
    if name:
        form["name"] = name

    try:
        resp = await asyncio.wait_for(
            http.post(upstream_url, data=form, timeout=timeout),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, httpx.HTTPError) as exc:
        raise normalize_http_error(exc, Provider.relay) from exc

    if resp.status_code in PASSTHROUGH_STATUSES:
        raise MediaError(
            kind_for_status(resp.status_code),
            f"Upstream rejected the upload (HTTP {resp.status_code})",
            raw_code=str(resp.status_code),
            provider=Provider.relay,
        )

    try:
        payload = resp.json()
    except ValueError:
        payload = None

    if payload is None and resp.is_error:
        raise MediaError(
            ErrorKind.upload_failed,
            f"Upstream responded with HTTP {resp.status_code}",
            raw_code=str(resp.status_code),
            provider=Provider.relay,
        )
    return parse_upstream_response(payload)


class RelayUploadAdapter(ProviderAdapter):
    provider = Provider.relay

    def __init__(self, http: httpx.AsyncClient, relay_url: str, timeout: float = 60):
        self._http = http
        self._relay_url = relay_url
        self._timeout = timeout

    async def send(self, request: UploadRequest, destination_path: str) -> UploadResult:
        filename = destination_path.rsplit("/", 1)[-1]
        base_name, _ = split_extension(filename)
        encoded = base64.b64encode(request.file_bytes)

        try:
            resp = await asyncio.wait_for(
                self._http.post(
                    self._relay_url,
                    files={"file": (filename, encoded, "text/plain")},
                    data={"name": base_name},
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.HTTPError) as exc:
            raise normalize_http_error(exc, self.provider) from exc

        try:
            envelope = RelayEnvelope.model_validate(resp.json())
        except ValueError:
            envelope = None

        if envelope is None or resp.is_error or not envelope.success:
            error = envelope.error if envelope is not None else None
            kind = kind_for_code(error.code if error else None)
            if kind is None:
                kind = kind_for_status(resp.status_code) if resp.is_error else ErrorKind.upload_failed
            message = error.message if error else "Failed to upload image"
            raw_code = (error.upstream_code or error.code) if error else str(resp.status_code)
            logger.warning("Relay upload failed (%s): %s", raw_code, message)
            raise MediaError(kind, message, raw_code=raw_code, provider=self.provider)

        data = envelope.data
        url = (data.display_url or data.url) if data is not None else None
        if not url:
            raise MediaError(
                ErrorKind.no_url,
                "Relay reported success but returned no image URL",
                provider=self.provider,
            )

        return UploadResult.ok(
            provider=self.provider,
            remote_id=data.id or filename,
            primary_url=url,
            secondary_urls={"thumbnail": data.thumbnail_url, "medium": data.medium_url},
            size_bytes=data.size or request.size_bytes,
            mime_type=data.mime_type or request.mime_type,
            created_at=datetime.now(timezone.utc),
            path=destination_path,
            delete_url=data.delete_url,
        )
