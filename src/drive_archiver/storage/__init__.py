"""
Remote file store and object store backends.
"""

from .base import ObjectStore, RemoteFileStore
from .google_drive import GoogleDriveClient
from .s3 import S3Uploader

__all__ = [
    "ObjectStore",
    "RemoteFileStore",
    "GoogleDriveClient",
    "S3Uploader",
]
