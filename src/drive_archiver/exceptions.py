"""
Exception hierarchy for Drive Archiver.

Authentication and configuration errors are fatal to a run. Transfer errors
are scoped to a single file and are turned into outcomes by the pipeline.
"""

from typing import Optional


class ArchiverError(Exception):
    """Base error for all Drive Archiver failures."""


class ConfigurationError(ArchiverError):
    """Raised when required configuration is missing or invalid."""


# Authentication

class AuthenticationError(ArchiverError):
    """Base error for credential acquisition and refresh failures."""


class CredentialsUnreadableError(AuthenticationError):
    """Raised when the application credentials file cannot be read or parsed."""


class MalformedRedirectRequestError(AuthenticationError):
    """Raised when the browser redirect is not a parseable HTTP request."""


class CsrfMismatchError(AuthenticationError):
    """Raised when the redirect's state does not match the one we generated."""


class MissingAuthorizationCodeError(AuthenticationError):
    """Raised when the redirect carries no authorization code."""


class TokenExchangeRejectedError(AuthenticationError):
    """Raised when the token endpoint reports an error.

    Only the short error code is kept so that response bodies never end up
    in logs.
    """

    def __init__(self, error_code: str):
        super().__init__(f"Token error: {error_code}")
        self.error_code = error_code


class MissingTokenFieldError(AuthenticationError):
    """Raised when a token response lacks a mandatory field."""

    def __init__(self, field: str):
        super().__init__(f"Missing {field}")
        self.field = field


# Remote store

class RemoteStoreError(ArchiverError):
    """Raised when listing the remote store fails."""


class FolderNotFoundError(RemoteStoreError):
    """Raised when no folder matches the requested name."""


# Transfers

class TransferError(ArchiverError):
    """Base error for per-file transfer failures."""


class DownloadFailedError(TransferError):
    """Raised when a download fails at the network or protocol level."""


class DownloadIncompleteError(DownloadFailedError):
    """Raised when the received byte count differs from the reported size."""

    def __init__(self, expected: int, received: int):
        super().__init__(
            f"Incomplete download: expected {expected} bytes, received {received} bytes"
        )
        self.expected = expected
        self.received = received


class UploadFailedError(TransferError):
    """Raised when the object store does not confirm an upload."""

    def __init__(self, key: str, reason: Optional[str] = None):
        message = f"Upload failed for key: {key}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.key = key


class DeleteFailedError(TransferError):
    """Raised when deleting the source copy fails."""
