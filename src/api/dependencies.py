"""
FastAPI dependency injection.

Dependencies provide instances of services and configuration to route
handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be swapped for testing
- Configuration is centralized

The media manager and the expiration scheduler are process-wide state.
They are created once in the application lifespan and kept on app.state
rather than in module globals, so every app instance (and every test)
gets its own tables and timers.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, Request

from ..config.settings import Settings
from ..core.media.expiration import ExpirationScheduler
from ..core.media.manager import MediaManager
from ..core.media.models import InvalidMediaIdError, MediaId
from ..infrastructure.imaging.transform import ImageTransformer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application State
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    """Provide the settings the running app was created with."""
    return request.app.state.settings


def get_media_manager(request: Request) -> MediaManager:
    """Provide the shared handle manager."""
    return request.app.state.media_manager


def get_expiration_scheduler(request: Request) -> ExpirationScheduler:
    """Provide the shared expiration scheduler."""
    return request.app.state.expiration_scheduler


def get_image_transformer(request: Request) -> ImageTransformer:
    """Provide the upload transform wired for this deployment."""
    return request.app.state.image_transformer


# ---------------------------------------------------------------------------
# Path Parameters
# ---------------------------------------------------------------------------

def parse_media_id(media_id: str) -> Optional[MediaId]:
    """
    Parse the media_id path segment.

    Returns None for malformed tokens instead of raising a validation
    error: a malformed handle is reported exactly like one that never
    existed or has expired.
    """
    try:
        return MediaId.from_hex(media_id)
    except InvalidMediaIdError:
        logger.debug("Malformed media id", extra={"media_id": media_id[:32]})
        return None


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
MediaManagerDep = Annotated[MediaManager, Depends(get_media_manager)]
ExpirationSchedulerDep = Annotated[ExpirationScheduler, Depends(get_expiration_scheduler)]
ImageTransformerDep = Annotated[ImageTransformer, Depends(get_image_transformer)]
MediaIdPath = Annotated[Optional[MediaId], Depends(parse_media_id)]
