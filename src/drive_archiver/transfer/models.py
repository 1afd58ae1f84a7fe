"""
Data model for a migration run.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

# Google Workspace documents have no binary representation to download
WORKSPACE_MIMETYPES = frozenset({
    "application/vnd.google-apps.document",
    "application/vnd.google-apps.spreadsheet",
    "application/vnd.google-apps.presentation",
    "application/vnd.google-apps.drawing",
    "application/vnd.google-apps.form",
    "application/vnd.google-apps.map",
    "application/vnd.google-apps.site",
})

_UNSAFE_CHARS = {"/": "_", "\\": "_", "\0": "_"}


def sanitize_filename(name: str) -> str:
    """Replace path separators and NUL bytes with underscores."""
    return "".join(_UNSAFE_CHARS.get(c, c) for c in name)


def object_key(run_date: str, name: str) -> str:
    """Destination key for a file: ``<run-date>/<sanitized-name>``."""
    return f"{run_date}/{sanitize_filename(name)}"


@dataclass(frozen=True)
class RemoteFileRecord:
    """A file as reported by the remote listing."""
    id: str
    name: str
    content_kind: str
    size: Optional[int] = None

    @property
    def is_transferable(self) -> bool:
        return self.content_kind not in WORKSPACE_MIMETYPES

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteFileRecord":
        """Build a record from a Drive ``files`` resource."""
        size = None
        raw_size = data.get("size")
        if raw_size is not None:
            try:
                size = int(raw_size)
            except (TypeError, ValueError):
                size = None
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            content_kind=data.get("mimeType", ""),
            size=size,
        )


class TransferOutcome(Enum):
    """Result of moving a single file."""
    UPLOADED = "uploaded"
    DOWNLOAD_FAILED = "download_failed"
    UPLOAD_FAILED = "upload_failed"
    UPLOADED_NOT_DELETED = "uploaded_not_deleted"

    @property
    def is_success(self) -> bool:
        return self in (TransferOutcome.UPLOADED, TransferOutcome.UPLOADED_NOT_DELETED)


@dataclass
class RunSummary:
    """Counters accumulated over one run."""
    total: int = 0
    uploaded: int = 0
    failed: int = 0
    uploaded_not_deleted: int = 0

    def record(self, outcome: TransferOutcome) -> None:
        if outcome.is_success:
            self.uploaded += 1
            if outcome is TransferOutcome.UPLOADED_NOT_DELETED:
                self.uploaded_not_deleted += 1
        else:
            self.failed += 1

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "uploaded": self.uploaded,
            "failed": self.failed,
            "uploaded_not_deleted": self.uploaded_not_deleted,
        }
