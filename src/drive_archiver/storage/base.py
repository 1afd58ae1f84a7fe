"""
Capability interfaces consumed by the transfer pipeline.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from ..transfer.models import RemoteFileRecord


class RemoteFileStore(ABC):
    """Source of files to migrate."""

    @abstractmethod
    async def find_folder(self, name: str) -> str:
        """
        Resolve a folder by exact name.

        Args:
            name: Folder name

        Returns:
            Folder ID

        Raises:
            FolderNotFoundError: If no folder has this name
        """

    @abstractmethod
    async def list_files(self, folder_id: str) -> List[RemoteFileRecord]:
        """List every entry in a folder, in listing order."""

    @abstractmethod
    async def download(self, record: RemoteFileRecord, destination: Path) -> int:
        """
        Download a file's bytes.

        Args:
            record: File to download
            destination: Local path to write

        Returns:
            Number of bytes written

        Raises:
            DownloadFailedError: On any network or local I/O failure
        """

    @abstractmethod
    async def delete(self, file_id: str) -> None:
        """
        Delete a file.

        Raises:
            DeleteFailedError: If the store does not confirm the delete
        """


class ObjectStore(ABC):
    """Durable destination for migrated files."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable description of where objects are stored."""

    @abstractmethod
    async def upload(self, key: str, local_path: Path) -> None:
        """
        Store a local file under ``key``.

        Returns only once the store has confirmed the write.

        Raises:
            UploadFailedError: If the write is not confirmed
        """
