"""Photographer gallery endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from eventlens.api.models import (
    GalleryResponse,
    UploadPhotosRequest,
    UploadPhotosResponse,
)
from eventlens.api.payloads import decode_image

if TYPE_CHECKING:
    from eventlens.containers import AppContainer

router = APIRouter(prefix="/gallery", tags=["gallery"])


def _get_photographer_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.photographer_token


async def require_photographer(
    x_photographer_token: str | None = Header(default=None),
    photographer_token: str = Depends(_get_photographer_token),
) -> None:
    """Ensure requests include a valid photographer token."""
    if not x_photographer_token or x_photographer_token != photographer_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("", dependencies=[Depends(require_photographer)])
async def gallery_summary(request: Request) -> GalleryResponse:
    """Return indexing progress for the event."""
    container: AppContainer = request.app.state.container
    stats = container.gallery.stats(container.indexing_processor.in_flight)
    return GalleryResponse(
        event_id=container.gallery.event_id,
        total=stats.total,
        indexed=stats.indexed,
        pending=stats.pending,
        in_flight=list(stats.in_flight),
    )


@router.post("/photos", dependencies=[Depends(require_photographer)])
async def upload_photos(
    payload: UploadPhotosRequest, request: Request
) -> UploadPhotosResponse:
    """Add photos to the gallery; indexing continues in the background."""
    container: AppContainer = request.app.state.container
    images = [decode_image(image) for image in payload.images]
    photos = container.gallery.add_photos(images)
    return UploadPhotosResponse(photo_ids=[photo.id for photo in photos])


@router.delete("", dependencies=[Depends(require_photographer)])
async def clear_gallery(request: Request) -> dict[str, str]:
    """Remove every photo from the event."""
    container: AppContainer = request.app.state.container
    container.gallery.clear()
    return {"status": "ok"}
