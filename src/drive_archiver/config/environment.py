"""
Environment variable handling for Drive Archiver configuration.
"""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from .settings import (
    ArchiverConfig,
    DEFAULT_CREDENTIALS_FILE,
    DEFAULT_FOLDER_NAME,
    DEFAULT_ROLE_SESSION_NAME,
    DEFAULT_TOKEN_FILE,
)
from .validation import ConfigValidator, ValidationError


class EnvironmentLoader:
    """Loads configuration from environment variables."""

    @staticmethod
    def load_config(dotenv_path: Optional[str] = None) -> ArchiverConfig:
        """
        Load and validate configuration from the environment.

        Values from a ``.env`` file are used only where the process
        environment does not already define them.

        Args:
            dotenv_path: Explicit .env file (searched for when omitted)

        Returns:
            Validated configuration

        Raises:
            ValidationError: If any setting is missing or invalid
        """
        load_dotenv(dotenv_path)

        errors: List[str] = []
        connect_timeout, error = EnvironmentLoader._parse_number('HTTP_CONNECT_TIMEOUT', '30')
        errors.extend(error)
        request_timeout, error = EnvironmentLoader._parse_number('HTTP_REQUEST_TIMEOUT', '1800')
        errors.extend(error)
        concurrency, error = EnvironmentLoader._parse_number('TRANSFER_CONCURRENCY', '1')
        errors.extend(error)

        config = ArchiverConfig(
            bucket=os.getenv('S3_BUCKET_NAME', '').strip(),
            role_arn=os.getenv('AWS_UPLOAD_ROLE_ARN', '').strip(),
            credentials_file=Path(os.getenv('GOOGLE_CREDENTIALS_FILE', DEFAULT_CREDENTIALS_FILE)),
            token_file=Path(os.getenv('GOOGLE_TOKEN_FILE', DEFAULT_TOKEN_FILE)),
            folder_name=os.getenv('DRIVE_FOLDER_NAME', DEFAULT_FOLDER_NAME),
            role_session_name=os.getenv('AWS_ROLE_SESSION_NAME', DEFAULT_ROLE_SESSION_NAME),
            aws_region=os.getenv('AWS_REGION') or None,
            connect_timeout=connect_timeout,
            request_timeout=request_timeout,
            concurrency=int(concurrency),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        )

        errors.extend(ConfigValidator.validate_config(config))
        if errors:
            raise ValidationError("Invalid configuration", errors)
        return config

    @staticmethod
    def _parse_number(key: str, default: str) -> Tuple[float, List[str]]:
        """Parse a numeric environment variable, collecting rather than raising errors."""
        raw = os.getenv(key, default)
        try:
            return float(raw), []
        except ValueError:
            return float(default), [f"{key} must be a number, got {raw!r}"]
