"""
Tests for the transfer pipeline.
"""

from pathlib import Path
from typing import Dict, List, Optional, Set

import httpx
import pytest

from drive_archiver.exceptions import (
    DeleteFailedError,
    DownloadFailedError,
    DownloadIncompleteError,
    FolderNotFoundError,
    UploadFailedError,
)
from drive_archiver.storage import GoogleDriveClient, ObjectStore, RemoteFileStore
from drive_archiver.transfer import (
    RemoteFileRecord,
    RunSummary,
    TransferOutcome,
    TransferPipeline,
    object_key,
    partition_records,
    sanitize_filename,
    verify_download,
)

RUN_DATE = "2026-03-01"
DOC_KIND = "application/vnd.google-apps.document"


class FakeDrive(RemoteFileStore):
    """In-memory remote store recording every call."""

    def __init__(
        self,
        files: Dict[RemoteFileRecord, bytes],
        truncate: Set[str] = frozenset(),
        broken: Set[str] = frozenset(),
        undeletable: Set[str] = frozenset(),
    ):
        self.files = files
        self.truncate = truncate
        self.broken = broken
        self.undeletable = undeletable
        self.downloaded: List[str] = []
        self.deleted: List[str] = []
        self.calls: List[str] = []

    async def find_folder(self, name: str) -> str:
        if name != "Takeout":
            raise FolderNotFoundError(f'No folder named "{name}"')
        return "folder-1"

    async def list_files(self, folder_id: str) -> List[RemoteFileRecord]:
        return list(self.files)

    async def download(self, record: RemoteFileRecord, destination: Path) -> int:
        self.downloaded.append(record.id)
        self.calls.append(f"download:{record.id}")
        if record.id in self.broken:
            raise DownloadFailedError("connection reset")
        data = self.files[record]
        if record.id in self.truncate:
            data = data[: len(data) // 2]
        destination.write_bytes(data)
        return len(data)

    async def delete(self, file_id: str) -> None:
        self.calls.append(f"delete:{file_id}")
        if file_id in self.undeletable:
            raise DeleteFailedError("HTTP 403")
        self.deleted.append(file_id)


class FakeObjectStore(ObjectStore):
    """In-memory object store."""

    def __init__(self, failing_keys: Optional[Set[str]] = None, calls: Optional[List[str]] = None):
        self.failing_keys = failing_keys or set()
        self.objects: Dict[str, bytes] = {}
        self.attempts: List[str] = []
        self.calls = calls if calls is not None else []

    @property
    def location(self) -> str:
        return "memory://backup"

    async def upload(self, key: str, local_path: Path) -> None:
        self.attempts.append(key)
        self.calls.append(f"upload:{key}")
        if key in self.failing_keys:
            raise UploadFailedError(key, "AccessDenied")
        self.objects[key] = local_path.read_bytes()


def record(file_id: str, name: str, size: Optional[int], kind: str = "application/zip"):
    return RemoteFileRecord(id=file_id, name=name, content_kind=kind, size=size)


def standard_folder() -> Dict[RemoteFileRecord, bytes]:
    return {
        record("f1", "takeout-001.zip", 10): b"a" * 10,
        record("f2", "takeout-002.zip", 20): b"b" * 20,
        record("doc", "Notes", None, DOC_KIND): b"",
        record("f3", "takeout-003.zip", 30): b"c" * 30,
    }


def make_pipeline(drive, store, work_dir, **kwargs) -> TransferPipeline:
    return TransferPipeline(
        remote=drive,
        object_store=store,
        folder_name=kwargs.pop("folder_name", "Takeout"),
        work_dir=work_dir,
        run_date=RUN_DATE,
        **kwargs,
    )


class TestNaming:
    """Tests for destination naming."""

    @pytest.mark.parametrize("name, expected", [
        ("photo.jpg", "photo.jpg"),
        ("../../etc/passwd", ".._.._etc_passwd"),
        ("a\\b.txt", "a_b.txt"),
        ("evil\0.zip", "evil_.zip"),
        ("/", "_"),
    ])
    def test_sanitize_filename(self, name, expected):
        assert sanitize_filename(name) == expected

    def test_object_key(self):
        assert object_key(RUN_DATE, "dir/file.zip") == "2026-03-01/dir_file.zip"


class TestPartition:
    """Tests for transferable/non-transferable partitioning."""

    def test_workspace_documents_are_skipped(self):
        records = list(standard_folder())
        files, skipped = partition_records(records)
        assert [r.id for r in files] == ["f1", "f2", "f3"]
        assert [r.id for r in skipped] == ["doc"]

    def test_folder_size_string_parsing(self):
        parsed = RemoteFileRecord.from_api(
            {"id": "x", "name": "n", "mimeType": "image/jpeg", "size": "12345"}
        )
        assert parsed.size == 12345
        assert parsed.is_transferable


class TestVerifyDownload:
    """Tests for download integrity checks."""

    def test_matching_size(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(b"12345")
        verify_download(record("f", "f", 5), 5, path)
        assert path.exists()

    def test_unknown_size_is_trusted(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(b"12345")
        verify_download(record("f", "f", None), 5, path)
        assert path.exists()

    def test_mismatch_removes_partial_file(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(b"123")
        with pytest.raises(DownloadIncompleteError) as exc_info:
            verify_download(record("f", "f", 5), 3, path)
        assert not path.exists()
        assert (exc_info.value.expected, exc_info.value.received) == (5, 3)


class TestRunSummary:
    """Tests for outcome accumulation."""

    def test_record_outcomes(self):
        summary = RunSummary(total=4)
        for outcome in TransferOutcome:
            summary.record(outcome)
        assert summary.to_dict() == {
            "total": 4,
            "uploaded": 2,
            "failed": 2,
            "uploaded_not_deleted": 1,
        }
        assert summary.has_failures


class TestTransferPipeline:
    """End-to-end runs against in-memory stores."""

    @pytest.mark.asyncio
    async def test_clean_run(self, tmp_path):
        drive = FakeDrive(standard_folder())
        store = FakeObjectStore()

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary == RunSummary(total=3, uploaded=3, failed=0, uploaded_not_deleted=0)
        assert not summary.has_failures
        assert set(store.objects) == {
            "2026-03-01/takeout-001.zip",
            "2026-03-01/takeout-002.zip",
            "2026-03-01/takeout-003.zip",
        }
        assert store.objects["2026-03-01/takeout-002.zip"] == b"b" * 20
        assert "doc" not in drive.downloaded
        assert "doc" not in drive.deleted
        assert drive.deleted == ["f1", "f2", "f3"]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_steps_run_in_order_per_file(self, tmp_path):
        folder = {record("f1", "a.zip", 1): b"a", record("f2", "b.zip", 1): b"b"}
        drive = FakeDrive(folder)
        store = FakeObjectStore(calls=drive.calls)

        await make_pipeline(drive, store, tmp_path).run()

        assert drive.calls == [
            "download:f1", "upload:2026-03-01/a.zip", "delete:f1",
            "download:f2", "upload:2026-03-01/b.zip", "delete:f2",
        ]

    @pytest.mark.asyncio
    async def test_upload_failure_keeps_source_and_continues(self, tmp_path):
        drive = FakeDrive(standard_folder())
        store = FakeObjectStore(failing_keys={"2026-03-01/takeout-001.zip"})

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary.failed == 1
        assert summary.uploaded == 2
        assert "f1" not in drive.deleted
        assert drive.deleted == ["f2", "f3"]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_delete_failure_counts_as_uploaded(self, tmp_path):
        drive = FakeDrive(standard_folder(), undeletable={"f2"})
        store = FakeObjectStore()

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary == RunSummary(total=3, uploaded=3, failed=0, uploaded_not_deleted=1)
        assert "2026-03-01/takeout-002.zip" in store.objects

    @pytest.mark.asyncio
    async def test_truncated_download_is_never_uploaded(self, tmp_path):
        drive = FakeDrive(standard_folder(), truncate={"f3"})
        store = FakeObjectStore()
        pipeline = make_pipeline(drive, store, tmp_path)

        summary = await pipeline.run()

        assert summary.failed == 1
        assert summary.uploaded == 2
        assert "2026-03-01/takeout-003.zip" not in store.attempts
        assert "f3" not in drive.deleted
        f3 = next(r for r in drive.files if r.id == "f3")
        assert not pipeline.local_path_for(f3).exists()

    @pytest.mark.asyncio
    async def test_download_error_is_isolated(self, tmp_path):
        drive = FakeDrive(standard_folder(), broken={"f1"})
        store = FakeObjectStore()

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary == RunSummary(total=3, uploaded=2, failed=1, uploaded_not_deleted=0)
        assert drive.deleted == ["f2", "f3"]

    @pytest.mark.asyncio
    async def test_delete_only_after_successful_upload(self, tmp_path):
        drive = FakeDrive(standard_folder(), broken={"f1"}, truncate={"f2"})
        store = FakeObjectStore(failing_keys={"2026-03-01/takeout-003.zip"})

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary.failed == 3
        assert drive.deleted == []

    @pytest.mark.asyncio
    async def test_colliding_sanitized_names(self, tmp_path):
        folder = {
            record("id-1", "a/b.txt", 3): b"one",
            record("id-2", "a\\b.txt", 3): b"two",
        }
        drive = FakeDrive(folder)
        store = FakeObjectStore()

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary.uploaded == 2
        assert drive.deleted == ["id-1", "id-2"]
        # Same key: the later file overwrites the earlier one
        assert store.attempts == ["2026-03-01/a_b.txt", "2026-03-01/a_b.txt"]
        assert store.objects == {"2026-03-01/a_b.txt": b"two"}

    @pytest.mark.asyncio
    async def test_unknown_size_is_uploaded(self, tmp_path):
        drive = FakeDrive({record("f1", "blob.bin", None): b"whatever"})
        store = FakeObjectStore()

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary.uploaded == 1
        assert store.objects["2026-03-01/blob.bin"] == b"whatever"

    @pytest.mark.asyncio
    async def test_missing_folder_aborts_run(self, tmp_path):
        pipeline = make_pipeline(FakeDrive({}), FakeObjectStore(), tmp_path, folder_name="Nope")
        with pytest.raises(FolderNotFoundError):
            await pipeline.run()

    @pytest.mark.asyncio
    async def test_empty_folder(self, tmp_path):
        summary = await make_pipeline(FakeDrive({}), FakeObjectStore(), tmp_path).run()
        assert summary == RunSummary()

    @pytest.mark.asyncio
    async def test_bounded_concurrency_preserves_invariants(self, tmp_path):
        drive = FakeDrive(standard_folder(), truncate={"f1"}, undeletable={"f3"})
        store = FakeObjectStore(failing_keys={"2026-03-01/takeout-002.zip"})

        summary = await make_pipeline(drive, store, tmp_path, concurrency=3).run()

        assert summary == RunSummary(total=3, uploaded=1, failed=2, uploaded_not_deleted=1)
        assert drive.deleted == []
        assert list(tmp_path.iterdir()) == []

    def test_default_run_date_is_utc_day(self, tmp_path):
        pipeline = TransferPipeline(FakeDrive({}), FakeObjectStore(), "Takeout", tmp_path)
        assert len(pipeline.run_date) == 10
        assert pipeline.run_date.count("-") == 2


class FlakyDrive(FakeDrive):
    """Remote store whose transport fails outside the error taxonomy."""

    def __init__(self, files, stream_closed: Set[str] = frozenset(), **kwargs):
        super().__init__(files, **kwargs)
        self.stream_closed = stream_closed

    async def download(self, record: RemoteFileRecord, destination: Path) -> int:
        if record.id in self.stream_closed:
            self.downloaded.append(record.id)
            destination.write_bytes(b"partial")
            raise httpx.StreamClosed()
        return await super().download(record, destination)

    async def delete(self, file_id: str) -> None:
        if file_id in self.undeletable:
            raise httpx.ReadTimeout("timed out")
        await super().delete(file_id)


class CrashingObjectStore(FakeObjectStore):
    """Object store whose client raises an unexpected error."""

    async def upload(self, key: str, local_path: Path) -> None:
        if key in self.failing_keys:
            self.attempts.append(key)
            raise RuntimeError("credentials provider crashed")
        await super().upload(key, local_path)


class TestUnexpectedErrors:
    """Errors outside the transfer error types stay confined to their file."""

    @pytest.mark.asyncio
    async def test_stream_error_during_download(self, tmp_path):
        drive = FlakyDrive(standard_folder(), stream_closed={"f2"})
        store = FakeObjectStore()

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary == RunSummary(total=3, uploaded=2, failed=1, uploaded_not_deleted=0)
        assert drive.downloaded == ["f1", "f2", "f3"]
        assert drive.deleted == ["f1", "f3"]
        assert "2026-03-01/takeout-002.zip" not in store.attempts
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unexpected_upload_error(self, tmp_path):
        drive = FakeDrive(standard_folder())
        store = CrashingObjectStore(failing_keys={"2026-03-01/takeout-001.zip"})

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary == RunSummary(total=3, uploaded=2, failed=1, uploaded_not_deleted=0)
        assert drive.deleted == ["f2", "f3"]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unexpected_delete_error(self, tmp_path):
        drive = FlakyDrive(standard_folder(), undeletable={"f1"})
        store = FakeObjectStore()

        summary = await make_pipeline(drive, store, tmp_path).run()

        assert summary == RunSummary(total=3, uploaded=3, failed=0, uploaded_not_deleted=1)
        assert drive.deleted == ["f2", "f3"]


class TestLocalCopies:
    """Tests for local copy placement."""

    def test_local_path_ignores_display_name(self, tmp_path):
        pipeline = make_pipeline(FakeDrive({}), FakeObjectStore(), tmp_path)
        long_name = "x" * 240 + ".zip"
        assert pipeline.local_path_for(record("f1", long_name, 1)) == tmp_path / "f1"

    @pytest.mark.asyncio
    async def test_long_name_through_drive_client(self, tmp_path):
        file_id = "1AbCdEfGhIjKlMnOpQrStUvWxYz012345"
        long_name = "Takeout-" + "n" * 228 + ".zip"
        assert len(file_id) == 33
        assert len(long_name) == 240

        def handler(request):
            if request.method == "DELETE":
                return httpx.Response(204)
            return httpx.Response(200, content=b"z" * 64)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        drive = GoogleDriveClient(http, "ya29.token")
        store = FakeObjectStore()
        pipeline = make_pipeline(drive, store, tmp_path)

        outcome = await pipeline.transfer_file(record(file_id, long_name, 64))

        assert outcome is TransferOutcome.UPLOADED
        assert store.objects == {f"2026-03-01/{long_name}": b"z" * 64}
        assert list(tmp_path.iterdir()) == []
