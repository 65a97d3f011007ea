import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends

from storefront_media.api.deps import get_media_client
from storefront_media.client import MediaClient

logger = logging.getLogger(__name__)
router = APIRouter(tags=["system"])


@router.get("/system/health")
async def health_check(
    media: MediaClient = Depends(get_media_client),
) -> dict[str, Any]:
    """Check MinIO connectivity and which upload providers are configured."""
    checks: dict[str, Any] = {}

    # MinIO
    try:
        exists = await asyncio.to_thread(media.storage.bucket_exists)
        checks["minio"] = "ok" if exists else "error: bucket missing"
    except Exception as e:
        logger.error("MinIO health check failed: %s", e)
        checks["minio"] = f"error: {e}"

    # Providers
    settings = media.settings
    checks["relay"] = "ok" if settings.relay_upstream_api_key else "error: no upstream API key"
    checks["legacy_direct"] = "ok" if settings.legacy_api_key else "disabled"

    overall = all(v in ("ok", "disabled") for v in checks.values())
    return {
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }
