"""
Media upload and retrieval endpoints.

The whole public surface of the relay:
1. Client uploads an image (POST /upload) and gets back a handle
2. Anyone holding the handle can fetch the image (GET /get/{media_id})
   or check it is still there (GET /exists/{media_id})
3. One TTL after upload the handle stops resolving

The handle is the only credential. Unknown, expired and malformed
handles all look the same from outside, so a caller learns nothing
beyond "not here".
"""

import logging
from typing import Annotated

from fastapi import APIRouter, File, HTTPException, Response, UploadFile, status

from ...core.media.models import ContentType
from ...infrastructure.imaging.transform import PNG_CONTENT_TYPE, ImageDecodingError
from ..dependencies import (
    ExpirationSchedulerDep,
    ImageTransformerDep,
    MediaIdPath,
    MediaManagerDep,
    SettingsDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=str,
    status_code=status.HTTP_200_OK,
    summary="Upload an image",
    description="Store an image for one TTL and return its 16-digit hex handle.",
    responses={
        400: {"description": "Not a decodable image"},
        413: {"description": "Image exceeds the upload limit"},
        503: {"description": "Service is shutting down"},
    },
)
async def upload(
    image: Annotated[UploadFile, File(description="Image in any common format")],
    settings: SettingsDep,
    manager: MediaManagerDep,
    scheduler: ExpirationSchedulerDep,
    transformer: ImageTransformerDep,
) -> str:
    """
    Upload an image.

    This endpoint:
    1. Enforces the size limit
    2. Decodes the image and re-encodes it as PNG
    3. Stores it (deduplicated by content)
    4. Binds a fresh handle and schedules its expiration

    Identical images uploaded twice share storage but still get two
    independent handles with two independent expirations.
    """
    max_bytes = settings.max_upload_size_bytes

    # Read one byte past the limit to detect oversize uploads without
    # pulling an arbitrarily large body into memory
    data = await image.read(max_bytes + 1)
    if len(data) > max_bytes:
        logger.warning(
            "Rejected oversize upload",
            extra={"limit_mb": settings.max_upload_size_mb, "upload_filename": image.filename},
        )
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Image exceeds {settings.max_upload_size_mb}MB"
        )

    try:
        processed = await transformer.transform(data)
    except ImageDecodingError as e:
        logger.info(
            "Rejected undecodable upload",
            extra={"upload_filename": image.filename, "size_bytes": len(data), "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Could not decode image: {e}"
        )

    # No await between this check and schedule(), so shutdown cannot
    # slip in and leave a bound handle without an expiration
    if scheduler.closed:
        logger.warning("Rejected upload during shutdown", extra={"upload_filename": image.filename})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is shutting down"
        )

    media_id = manager.store(processed.payload, processed.metadata)
    scheduler.schedule(media_id)

    logger.info(
        "Uploaded media",
        extra={
            "media_id": media_id.hex,
            "input_bytes": len(data),
            "stored_bytes": len(processed.payload),
            "ttl_seconds": scheduler.ttl_seconds,
        },
    )

    return media_id.hex


@router.get(
    "/get/{media_id}",
    status_code=status.HTTP_200_OK,
    summary="Fetch an image",
    description="Return the stored image bytes for a live handle.",
    response_class=Response,
    responses={
        200: {"content": {PNG_CONTENT_TYPE: {}}},
        404: {"description": "Unknown or expired handle"},
    },
)
async def get_media(handle: MediaIdPath, manager: MediaManagerDep) -> Response:
    """Serve the stored payload with its content type."""
    stored = manager.retrieve(handle) if handle is not None else None
    if stored is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="This file was not found"
        )

    if isinstance(stored.metadata, ContentType):
        content_type = stored.metadata.mime
    else:
        content_type = PNG_CONTENT_TYPE

    return Response(content=stored.payload, media_type=content_type)


@router.get(
    "/exists/{media_id}",
    response_model=bool,
    status_code=status.HTTP_200_OK,
    summary="Check a handle",
    description="True while the handle resolves to a stored image.",
)
async def media_exists(handle: MediaIdPath, manager: MediaManagerDep) -> bool:
    return handle is not None and manager.contains(handle)
