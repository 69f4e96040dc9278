"""
Router aggregator for the relay's HTTP routes.

Routes are mounted at the application root:
    /upload-video, /upload-video/{personName}, /upload-video-chunked - uploads
    /fix-video-mime/{fileId} - content type repair
"""

import logging

from fastapi import APIRouter

from video_relay.api.maintenance import router as maintenance_router
from video_relay.api.upload import router as upload_router


logger = logging.getLogger(__name__)

api_router = APIRouter()
api_router.include_router(upload_router)
api_router.include_router(maintenance_router)

__all__ = ["api_router"]
