"""Photo API routes."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from coffee_chronicles.api.dependencies import (
    get_coffee_date_service,
    get_photo_service,
    require_auth,
)
from coffee_chronicles.core.exceptions import NotFoundException
from coffee_chronicles.models.schemas import PhotoListResponse, PhotoUpload, SuccessResponse
from coffee_chronicles.services import CoffeeDateService, PhotoService

router = APIRouter(prefix="/photos")


async def _read_upload(upload: UploadFile) -> PhotoUpload:
    try:
        data = await upload.read()
    finally:
        await upload.close()
    return PhotoUpload(
        filename=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


@router.post(
    "",
    response_model=PhotoListResponse,
    status_code=201,
    dependencies=[Depends(require_auth)],
)
async def upload_photos(
    files: Optional[List[UploadFile]] = File(default=None),
    coffee_date_id: Optional[str] = Form(default=None, alias="coffeeDateId"),
    photos: PhotoService = Depends(get_photo_service),
    coffee_dates: CoffeeDateService = Depends(get_coffee_date_service),
):
    """
    Upload one or more photos.

    **Parameters:**
    - **files**: JPEG, PNG or WebP images, at most 10 MB each
    - **coffeeDateId**: Coffee date the photos belong to (optional)
    """
    if coffee_date_id and await coffee_dates.get_by_id(coffee_date_id) is None:
        raise NotFoundException("Coffee date", coffee_date_id)

    uploads = [await _read_upload(f) for f in files or []]
    uploaded = await photos.upload_many(uploads, coffee_date_id or None)

    if coffee_date_id:
        await coffee_dates.add_photos(coffee_date_id, [p.id for p in uploaded])

    return PhotoListResponse(photos=uploaded)


@router.get("", response_model=PhotoListResponse)
async def list_photos(
    coffee_date_id: Optional[str] = Query(default=None, alias="coffeeDateId"),
    photos: PhotoService = Depends(get_photo_service),
):
    """List photos of a coffee date, or the unassigned photos when no ID is given."""
    if coffee_date_id:
        return PhotoListResponse(photos=await photos.list_by_coffee_date(coffee_date_id))
    return PhotoListResponse(photos=await photos.list_unassigned())


@router.delete(
    "/{photo_id}",
    response_model=SuccessResponse,
    dependencies=[Depends(require_auth)],
)
async def delete_photo(
    photo_id: str,
    photos: PhotoService = Depends(get_photo_service),
):
    """Delete a photo and its stored files."""
    await photos.delete(photo_id)
    return SuccessResponse()
