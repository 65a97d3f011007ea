"""Upload relay: forwards a file to the image host with the server-held key."""

import base64
import binascii
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from storefront_media.api.deps import get_media_client
from storefront_media.client import MediaClient
from storefront_media.errors import MediaError
from storefront_media.providers.relay import RelayEnvelope, RelayError, forward_upload

logger = logging.getLogger(__name__)
router = APIRouter(tags=["relay"])


def _as_base64(content: bytes) -> str:
    """Relay clients send base64 text; plain binary uploads are encoded here."""
    stripped = content.strip()
    try:
        base64.b64decode(stripped, validate=True)
        return stripped.decode("ascii")
    except (binascii.Error, ValueError):
        return base64.b64encode(content).decode("ascii")


def error_response(exc: MediaError) -> JSONResponse:
    code = exc.raw_code if exc.raw_code == "NO_API_KEY" else exc.kind.value
    upstream_code = exc.raw_code if exc.raw_code and exc.raw_code != code else None
    envelope = RelayEnvelope(
        success=False,
        error=RelayError(code=code, message=exc.message, upstream_code=upstream_code),
    )
    return JSONResponse(status_code=exc.status_code, content=envelope.model_dump(exclude_none=True))


@router.post("/upload", response_model=RelayEnvelope, response_model_exclude_none=True)
async def relay_upload(
    file: UploadFile | None = File(default=None),
    name: str | None = Form(default=None),
    media: MediaClient = Depends(get_media_client),
):
    settings = media.settings
    if not settings.relay_upstream_api_key:
        logger.error("Upload relay called but relay_upstream_api_key is not set")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": {"code": "NO_API_KEY", "message": "Upload service is not configured"}},
        )

    content = await file.read() if file is not None else b""
    if not content:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": {"code": "NO_FILE", "message": "No file provided"}},
        )

    logger.info("Relaying %s (%d bytes) to upstream", file.filename, len(content))
    try:
        image = await forward_upload(
            media.http,
            settings.relay_upstream_url,
            settings.relay_upstream_api_key,
            _as_base64(content),
            name=name,
            timeout=settings.request_timeout_seconds,
        )
    except MediaError as exc:
        logger.warning("Relay upload failed: %s %s (%s)", exc.kind.value, exc.message, exc.raw_code)
        return error_response(exc)

    logger.info("Relay upload successful - display_url: %s", image.display_url)
    return RelayEnvelope(success=True, data=image)
