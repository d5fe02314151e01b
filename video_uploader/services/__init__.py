"""Services for video_uploader module."""
from .api_client import GalleryClient
from .transport import HTTPUploadTransport

__all__ = [
    "GalleryClient",
    "HTTPUploadTransport",
]
