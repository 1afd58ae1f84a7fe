"""
Transfer pipeline.

Moves every binary file of a Drive folder to the object store. For each
file: download, verify the byte count, upload, and delete the source only
after the upload is confirmed. A failing file never aborts the run.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

from ..exceptions import DownloadIncompleteError, TransferError
from .models import (
    RemoteFileRecord,
    RunSummary,
    TransferOutcome,
    object_key,
    sanitize_filename,
)

if TYPE_CHECKING:
    from ..storage.base import ObjectStore, RemoteFileStore

logger = logging.getLogger(__name__)


def partition_records(
    records: List[RemoteFileRecord],
) -> Tuple[List[RemoteFileRecord], List[RemoteFileRecord]]:
    """Split records into (transferable, skipped), keeping listing order."""
    transferable = [r for r in records if r.is_transferable]
    skipped = [r for r in records if not r.is_transferable]
    return transferable, skipped


def _describe(error: Exception) -> str:
    if isinstance(error, TransferError):
        return str(error)
    return f"{type(error).__name__}: {error}"


def verify_download(record: RemoteFileRecord, received: int, local_path: Path) -> None:
    """
    Check a downloaded file against the size reported by the listing.

    Files without a reported size are trusted once the stream has ended.

    Raises:
        DownloadIncompleteError: On mismatch; the partial file is removed first
    """
    if record.size is None or received == record.size:
        return
    local_path.unlink(missing_ok=True)
    raise DownloadIncompleteError(expected=record.size, received=received)


class TransferPipeline:
    """
    Migrates one remote folder into the object store.
    """

    def __init__(
        self,
        remote: "RemoteFileStore",
        object_store: "ObjectStore",
        folder_name: str,
        work_dir: Path,
        run_date: Optional[str] = None,
        concurrency: int = 1,
    ):
        """
        Initialize transfer pipeline.

        Args:
            remote: Source file store
            object_store: Destination store
            folder_name: Remote folder to migrate
            work_dir: Scratch directory for local copies
            run_date: Key prefix, today's UTC date by default
            concurrency: Files transferred at once
        """
        self.remote = remote
        self.object_store = object_store
        self.folder_name = folder_name
        self.work_dir = Path(work_dir)
        self.run_date = run_date or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        self.concurrency = max(1, concurrency)

    async def enumerate(self) -> List[RemoteFileRecord]:
        """
        Snapshot the folder contents.

        Raises:
            FolderNotFoundError: If the folder does not exist
            RemoteStoreError: If listing fails
        """
        logger.info(f'Looking up folder "{self.folder_name}" ...')
        folder_id = await self.remote.find_folder(self.folder_name)

        logger.info("Listing files ...")
        return await self.remote.list_files(folder_id)

    def local_path_for(self, record: RemoteFileRecord) -> Path:
        # Named by id only: same-named files stay apart and long names still fit
        return self.work_dir / sanitize_filename(record.id)

    async def transfer_file(
        self,
        record: RemoteFileRecord,
        position: int = 1,
        total: int = 1,
    ) -> TransferOutcome:
        """
        Move one file and report how far it got.

        The source copy is deleted only after the upload returned success.
        The local copy is always removed.
        """
        label = f"[{position}/{total}]"
        local_path = self.local_path_for(record)
        key = object_key(self.run_date, record.name)

        try:
            try:
                received = await self.remote.download(record, local_path)
                verify_download(record, received, local_path)
            except Exception as e:
                logger.error(f"{label} ✗ {record.name} - download error: {_describe(e)}")
                return TransferOutcome.DOWNLOAD_FAILED

            logger.debug(f"{label} uploading to {self.object_store.location}/{key}")
            try:
                await self.object_store.upload(key, local_path)
            except Exception as e:
                logger.error(f"{label} ✗ {record.name} - upload error: {_describe(e)}")
                return TransferOutcome.UPLOAD_FAILED

            try:
                await self.remote.delete(record.id)
            except Exception as e:
                logger.warning(
                    f"{label} ✓ {record.name} (uploaded) - warning: Drive delete failed: {_describe(e)}"
                )
                return TransferOutcome.UPLOADED_NOT_DELETED

            logger.info(f"{label} ✓ {record.name}")
            return TransferOutcome.UPLOADED
        finally:
            try:
                local_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove local copy {local_path}: {e}")

    async def run(self) -> RunSummary:
        """
        Enumerate the folder once, then transfer every binary file.

        Returns:
            Summary of the run
        """
        records = await self.enumerate()
        files, skipped = partition_records(records)

        if skipped:
            logger.info(
                f"Skipping {len(skipped)} Google Workspace file(s) "
                f"(not downloadable as binary):"
            )
            for record in skipped:
                logger.info(f"  - {record.name} ({record.content_kind})")

        total = len(files)
        logger.info(
            f"Found {total} file(s) to back up under "
            f"{self.object_store.location}/{self.run_date}/"
        )

        self.work_dir.mkdir(parents=True, exist_ok=True)
        summary = RunSummary(total=total)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def transfer(position: int, record: RemoteFileRecord) -> None:
            async with semaphore:
                outcome = await self.transfer_file(record, position, total)
            summary.record(outcome)

        await asyncio.gather(
            *(transfer(i, record) for i, record in enumerate(files, start=1))
        )
        return summary
