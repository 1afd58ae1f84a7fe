"""
Runtime settings for Drive Archiver.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_CREDENTIALS_FILE = "credentials.json"
DEFAULT_TOKEN_FILE = "token.json"
DEFAULT_FOLDER_NAME = "Takeout"
DEFAULT_ROLE_SESSION_NAME = "google-photos-backup"


@dataclass
class ArchiverConfig:
    """Complete configuration for one migration run."""
    bucket: str
    role_arn: str
    credentials_file: Path = Path(DEFAULT_CREDENTIALS_FILE)
    token_file: Path = Path(DEFAULT_TOKEN_FILE)
    folder_name: str = DEFAULT_FOLDER_NAME
    role_session_name: str = DEFAULT_ROLE_SESSION_NAME
    aws_region: Optional[str] = None
    connect_timeout: float = 30.0
    # Large Takeout archives need long per-request budgets
    request_timeout: float = 1800.0
    concurrency: int = 1
    log_level: str = "INFO"
