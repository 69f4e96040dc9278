"""
Utilities for the video relay.

Modules:
    mime: extension to content type resolution for video uploads
    naming: person name sanitization, stored filename formatting and parsing
    staging: streaming multipart uploads into private temp directories
    logger: JSON and text logging setup with context adapters
"""
