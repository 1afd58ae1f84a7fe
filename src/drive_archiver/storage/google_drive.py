"""
Google Drive v3 client.

Talks to the REST API directly with a bearer token obtained by the token
manager.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import (
    DeleteFailedError,
    DownloadFailedError,
    FolderNotFoundError,
    RemoteStoreError,
)
from ..transfer.models import RemoteFileRecord
from .base import RemoteFileStore

logger = logging.getLogger(__name__)

DRIVE_API = "https://www.googleapis.com/drive/v3"
FOLDER_MIMETYPE = "application/vnd.google-apps.folder"


def _quote(value: str) -> str:
    """Escape a value for a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleDriveClient(RemoteFileStore):
    """
    Drive file store bound to one access token.
    """

    def __init__(self, http: httpx.AsyncClient, access_token: str, page_size: int = 1000):
        """
        Initialize Drive client.

        Args:
            http: Shared HTTP client
            access_token: OAuth bearer token
            page_size: Entries requested per listing page
        """
        self.http = http
        self.page_size = page_size
        self._headers = {"Authorization": f"Bearer {access_token}"}

    async def find_folder(self, name: str) -> str:
        """Resolve a folder by exact name, picking the first if several match."""
        data = await self._get_json(
            f"{DRIVE_API}/files",
            {
                "q": f"name='{_quote(name)}' and mimeType='{FOLDER_MIMETYPE}' and trashed=false",
                "fields": "files(id,name)",
            },
        )
        folders = data.get("files", [])

        if not folders:
            raise FolderNotFoundError(f'No folder named "{name}" found in Google Drive')
        if len(folders) > 1:
            logger.warning(f'{len(folders)} folders named "{name}", using the first')
        return folders[0]["id"]

    async def list_files(self, folder_id: str) -> List[RemoteFileRecord]:
        """List every non-trashed entry in a folder, following pagination."""
        records: List[RemoteFileRecord] = []
        page_token: Optional[str] = None

        while True:
            params = {
                "q": f"'{_quote(folder_id)}' in parents and trashed=false",
                # size lets us verify completeness after download
                "fields": "nextPageToken,files(id,name,mimeType,size)",
                "pageSize": str(self.page_size),
            }
            if page_token:
                params["pageToken"] = page_token

            data = await self._get_json(f"{DRIVE_API}/files", params)
            records.extend(RemoteFileRecord.from_api(f) for f in data.get("files", []))

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(records)} entries in folder {folder_id}")
        return records

    async def download(self, record: RemoteFileRecord, destination: Path) -> int:
        """Stream a file's content to ``destination`` and return the byte count."""
        bytes_written = 0
        try:
            async with self.http.stream(
                "GET",
                f"{DRIVE_API}/files/{record.id}",
                params={"alt": "media"},
                headers=self._headers,
            ) as response:
                response.raise_for_status()
                with open(destination, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                        bytes_written += len(chunk)
        except httpx.HTTPStatusError as e:
            raise DownloadFailedError(
                f"Drive returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, httpx.StreamError, OSError) as e:
            raise DownloadFailedError(f"{type(e).__name__}: {e}") from e

        return bytes_written

    async def delete(self, file_id: str) -> None:
        """Permanently delete a file."""
        try:
            response = await self.http.delete(
                f"{DRIVE_API}/files/{file_id}",
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeleteFailedError(
                f"Drive delete returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DeleteFailedError(f"{type(e).__name__}: {e}") from e

    async def _get_json(self, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = await self.http.get(url, params=params, headers=self._headers)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise RemoteStoreError(
                f"Drive listing returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Drive listing failed: {e}") from e
        except ValueError as e:
            raise RemoteStoreError("Drive listing returned invalid JSON") from e
