"""
Configuration validation for Drive Archiver.
"""

from typing import List

from ..exceptions import ConfigurationError
from .settings import ArchiverConfig

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigValidator:
    """Validates configuration settings."""

    @staticmethod
    def validate_config(config: ArchiverConfig) -> List[str]:
        """Validate the entire archiver configuration."""
        errors = []

        errors.extend(ConfigValidator._validate_required_fields(config))
        errors.extend(ConfigValidator._validate_numeric_ranges(config))

        if config.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"LOG_LEVEL must be one of {', '.join(sorted(VALID_LOG_LEVELS))}"
            )

        return errors

    @staticmethod
    def _validate_required_fields(config: ArchiverConfig) -> List[str]:
        """Validate required configuration fields."""
        errors = []

        if not config.bucket:
            errors.append("S3_BUCKET_NAME must be set")
        if not config.role_arn:
            errors.append("AWS_UPLOAD_ROLE_ARN must be set")
        elif not config.role_arn.startswith("arn:"):
            errors.append("AWS_UPLOAD_ROLE_ARN does not look like an ARN")
        if not config.folder_name.strip():
            errors.append("DRIVE_FOLDER_NAME must not be empty")

        return errors

    @staticmethod
    def _validate_numeric_ranges(config: ArchiverConfig) -> List[str]:
        """Validate numeric configuration values are within acceptable ranges."""
        errors = []

        if config.connect_timeout <= 0:
            errors.append("HTTP_CONNECT_TIMEOUT must be positive")
        if config.request_timeout <= 0:
            errors.append("HTTP_REQUEST_TIMEOUT must be positive")
        if config.concurrency < 1:
            errors.append("TRANSFER_CONCURRENCY must be at least 1")

        return errors


class ValidationError(ConfigurationError):
    """Exception raised for configuration validation errors."""

    def __init__(self, message: str, errors: List[str]):
        super().__init__(message)
        self.errors = errors

    def __str__(self) -> str:
        if not self.errors:
            return super().__str__()
        return f"{super().__str__()}: " + "; ".join(self.errors)
