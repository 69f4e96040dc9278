"""
Video Relay Backend Application Package

This package contains the FastAPI application that accepts video uploads,
gives them a canonical name and forwards them to a Google Drive folder.

Package Structure:
- api/: HTTP routes (upload, MIME repair) and request dependencies
- core/: Infrastructure clients (Google Drive, credentials, Redis)
- models/: Pydantic and dataclass models for uploads and Drive references
- services/: Upload pipeline and retroactive MIME fixer
- utils/: MIME resolution, filename formatting, staging and logging helpers
"""

__version__ = "1.0.0"
__app_name__ = "VIDEO-RELAY"
