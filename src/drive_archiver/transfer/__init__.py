"""
Drive to object-store transfer pipeline.
"""

from .models import (
    RemoteFileRecord,
    RunSummary,
    TransferOutcome,
    WORKSPACE_MIMETYPES,
    object_key,
    sanitize_filename,
)
from .pipeline import TransferPipeline, partition_records, verify_download

__all__ = [
    "RemoteFileRecord",
    "RunSummary",
    "TransferOutcome",
    "WORKSPACE_MIMETYPES",
    "object_key",
    "sanitize_filename",
    "TransferPipeline",
    "partition_records",
    "verify_download",
]
