"""FastAPI dependencies."""

from fastapi import Request

from storefront_media.client import MediaClient


def get_media_client(request: Request) -> MediaClient:
    """The MediaClient built in the app lifespan."""
    return request.app.state.media
