"""Legacy direct-upload host (ImgBB).

Kept so previously uploaded references stay usable; new uploads should go
through the relay or object storage.
"""

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from storefront_media.enums import ErrorKind, Provider
from storefront_media.errors import MediaError, normalize_http_error
from storefront_media.naming import split_extension
from storefront_media.providers.base import ProviderAdapter, first_populated
from storefront_media.schemas import UploadRequest, UploadResult

logger = logging.getLogger(__name__)

DISPLAY_URL_PATHS = (("display_url",), ("url",))


class LegacyDirectAdapter(ProviderAdapter):
    provider = Provider.legacy_direct

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        upload_url: str = "https://api.imgbb.com/1/upload",
        timeout: float = 60,
    ):
        self._http = http
        self._api_key = api_key
        self._upload_url = upload_url
        self._timeout = timeout

    async def send(self, request: UploadRequest, destination_path: str) -> UploadResult:
        if not self._api_key:
            raise MediaError(
                ErrorKind.unauthorized,
                "ImgBB API key is not configured",
                raw_code="NO_API_KEY",
                provider=self.provider,
            )

        filename = destination_path.rsplit("/", 1)[-1]
        base_name, _ = split_extension(filename)

        try:
            resp = await asyncio.wait_for(
                self._http.post(
                    self._upload_url,
                    params={"key": self._api_key},
                    files={"image": (filename, request.file_bytes, request.mime_type)},
                    data={"name": base_name},
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, httpx.HTTPError) as exc:
            raise normalize_http_error(exc, self.provider) from exc

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {}

        if resp.is_error or not payload.get("success"):
            error = payload.get("error") if isinstance(payload.get("error"), dict) else {}
            message = error.get("message") or "Failed to upload image to ImageBB"
            raw_code = str(error.get("code") or payload.get("status_code") or resp.status_code)
            logger.warning("ImgBB upload rejected (%s): %s", raw_code, message)
            raise MediaError(ErrorKind.upload_failed, message, raw_code=raw_code, provider=self.provider)

        data = payload.get("data") or {}
        url = first_populated(data, DISPLAY_URL_PATHS)
        if not url:
            raise MediaError(
                ErrorKind.no_url,
                "ImgBB reported success but returned no image URL",
                provider=self.provider,
            )

        created = data.get("time")
        return UploadResult.ok(
            provider=self.provider,
            remote_id=str(data.get("id") or filename),
            primary_url=url,
            secondary_urls={
                "thumbnail": first_populated(data, [("thumb", "url")]),
                "medium": first_populated(data, [("medium", "url")]),
            },
            size_bytes=int(data.get("size") or request.size_bytes),
            mime_type=request.mime_type,
            created_at=(
                datetime.fromtimestamp(int(created), tz=timezone.utc)
                if str(created or "").isdigit()
                else datetime.now(timezone.utc)
            ),
            path=destination_path,
            delete_url=data.get("delete_url"),
        )
