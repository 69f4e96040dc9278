"""Upload pipeline and retroactive MIME type repair."""

from video_relay.services.mime_fixer import MimeTypeFixer
from video_relay.services.upload_service import UploadPipeline


__all__ = ["MimeTypeFixer", "UploadPipeline"]
