import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront_media.api.routes.media import router as media_router
from storefront_media.api.routes.relay import router as relay_router
from storefront_media.api.routes.system import router as system_router
from storefront_media.client import MediaClient
from storefront_media.config import Settings, get_settings
from storefront_media.errors import MediaError

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, media_client: MediaClient | None = None) -> FastAPI:
    settings = settings or (media_client.settings if media_client else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

        logger.info("Starting storefront-media API")

        if media_client is not None:
            app.state.media = media_client
            yield
        else:
            async with MediaClient(settings) as media:
                # Ensure MinIO bucket exists
                await asyncio.to_thread(media.storage.ensure_bucket)
                app.state.media = media
                yield

        logger.info("Shutting down storefront-media API")

    app = FastAPI(
        title="Storefront Media",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(MediaError)
    async def media_error_handler(request: Request, exc: MediaError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": {"code": exc.kind.value, "message": exc.message},
            },
        )

    app.include_router(system_router, prefix="/api")
    app.include_router(relay_router, prefix="/api")
    app.include_router(media_router, prefix="/api")
    return app


def main():
    """Entry point for storefront-media-api script."""
    uvicorn.run(
        "storefront_media.api.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=False,
    )
