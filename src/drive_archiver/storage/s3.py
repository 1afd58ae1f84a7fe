"""
S3 object store reached through an assumed upload role.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import boto3
from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ConfigurationError, UploadFailedError
from .base import ObjectStore

logger = logging.getLogger(__name__)


class S3Uploader(ObjectStore):
    """Uploads files to a single S3 bucket."""

    def __init__(self, bucket: str, client: Any):
        """
        Initialize uploader.

        Args:
            bucket: Destination bucket name
            client: boto3 S3 client
        """
        self.bucket = bucket
        self._client = client

    @classmethod
    def from_assumed_role(
        cls,
        bucket: str,
        role_arn: str,
        session_name: str = "google-photos-backup",
        region: Optional[str] = None,
    ) -> "S3Uploader":
        """
        Build an uploader from temporary credentials for ``role_arn``.

        The base credentials come from the default boto3 chain (environment,
        profile or instance role) and are only used to call STS.

        Raises:
            ConfigurationError: If the role cannot be assumed
        """
        try:
            sts = boto3.client("sts", region_name=region)
            assumed = sts.assume_role(RoleArn=role_arn, RoleSessionName=session_name)
        except (BotoCoreError, ClientError) as e:
            raise ConfigurationError(f"Failed to assume upload role: {e}") from e

        credentials = assumed.get("Credentials")
        if not credentials:
            raise ConfigurationError("No credentials in AssumeRole response")

        client = boto3.client(
            "s3",
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=region,
        )
        logger.info(f"Assumed upload role for bucket {bucket}")
        return cls(bucket, client)

    @property
    def location(self) -> str:
        return f"s3://{self.bucket}"

    async def upload(self, key: str, local_path: Path) -> None:
        """Upload a file, using multipart transfers for large objects."""
        try:
            await asyncio.to_thread(
                self._client.upload_file, str(local_path), self.bucket, key
            )
        except (BotoCoreError, ClientError, Boto3Error, OSError) as e:
            raise UploadFailedError(key, str(e)) from e
