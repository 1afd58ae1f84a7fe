"""
Credential models and on-disk token persistence.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..exceptions import CredentialsUnreadableError

logger = logging.getLogger(__name__)

# A credential is only "valid" if it stays valid for at least this long
STALENESS_MARGIN = timedelta(seconds=60)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Credential:
    """Bearer credential for the Drive API."""
    access_token: str
    refresh_token: str
    expiry: datetime

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """Check whether the access token must be refreshed before use."""
        now = now or utcnow()
        return now >= self.expiry - STALENESS_MARGIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        expiry = datetime.fromisoformat(data["expiry"].replace("Z", "+00:00"))
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        access_token = data["access_token"]
        refresh_token = data["refresh_token"]
        if not isinstance(access_token, str) or not isinstance(refresh_token, str):
            raise TypeError("token fields must be strings")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expiry=expiry,
        )


@dataclass(frozen=True)
class AppCredentials:
    """OAuth client registration downloaded from the Google Cloud console."""
    client_id: str
    client_secret: str

    @classmethod
    def from_file(cls, path: Path) -> "AppCredentials":
        """
        Load client credentials from a client secrets JSON file.

        The file nests the values under ``installed`` (desktop clients) or
        ``web``.

        Raises:
            CredentialsUnreadableError: If the file is missing or malformed
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise CredentialsUnreadableError(
                f"Cannot read credentials file: {path}"
            ) from e

        section = None
        if isinstance(data, dict):
            section = data.get("installed") or data.get("web")
        if not isinstance(section, dict):
            raise CredentialsUnreadableError(
                f"Credentials file {path} has no 'installed' or 'web' client section"
            )

        client_id = section.get("client_id")
        client_secret = section.get("client_secret")
        if not client_id or not client_secret:
            raise CredentialsUnreadableError(
                f"Credentials file {path} is missing client_id or client_secret"
            )
        return cls(client_id=client_id, client_secret=client_secret)


class TokenStore:
    """
    Single-record token storage.

    The record is written through a temporary file that is restricted to the
    owner and then renamed over the canonical path, so readers never observe
    a partial or world-readable token.
    """

    def __init__(self, path: Path):
        """
        Initialize token store.

        Args:
            path: Canonical location of the persisted credential
        """
        self.path = Path(path)

    @property
    def tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def load(self) -> Optional[Credential]:
        """
        Load the persisted credential.

        Returns:
            The credential, or None if no record exists or it does not parse
        """
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Credential.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {type(e).__name__}")
            return None

    def persist(self, credential: Credential) -> None:
        """Atomically replace the persisted credential."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(credential.to_dict(), indent=2)

        tmp_path = self.tmp_path
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        # O_CREAT mode does not apply to a leftover tmp file from a killed run
        os.chmod(tmp_path, 0o600)

        os.replace(tmp_path, self.path)
        logger.debug(f"Stored token at {self.path}")
