"""
Main entry point for Drive Archiver.

Authenticates with Google Drive, assumes the S3 upload role and migrates
the configured folder in a single pass.
"""

import asyncio
import logging
import sys
import tempfile
from pathlib import Path
from typing import Optional

import httpx

from .auth import TokenManager, TokenStore
from .config import ArchiverConfig, EnvironmentLoader
from .exceptions import ArchiverError
from .storage import GoogleDriveClient, S3Uploader
from .transfer import RunSummary, TransferPipeline

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TRANSFER_FAILURES = 1
EXIT_FATAL = 2


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging to stdout."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # Keep request URLs (and their query strings) out of the INFO stream
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)


def build_http_client(config: ArchiverConfig) -> httpx.AsyncClient:
    timeout = httpx.Timeout(config.request_timeout, connect=config.connect_timeout)
    return httpx.AsyncClient(timeout=timeout, follow_redirects=True)


def report_summary(summary: RunSummary) -> None:
    """Print the run summary; not-deleted warnings always come last."""
    print(
        f"\nBackup complete: {summary.uploaded}/{summary.total} uploaded, "
        f"{summary.failed} failed."
    )
    if summary.uploaded_not_deleted:
        print(
            f"Warning: {summary.uploaded_not_deleted} file(s) were archived to S3 but "
            f"could not be deleted from Google Drive. Check Drive manually.",
            file=sys.stderr,
        )


def exit_code_for(summary: RunSummary) -> int:
    return EXIT_TRANSFER_FAILURES if summary.has_failures else EXIT_OK


async def run_migration(config: ArchiverConfig, work_dir: Optional[Path] = None) -> RunSummary:
    """
    Run one complete migration.

    Raises:
        ArchiverError: On configuration, authentication or listing failures
    """
    async with build_http_client(config) as http:
        print("Authenticating with Google Drive ...")
        token_manager = TokenManager(
            http,
            config.credentials_file,
            TokenStore(config.token_file),
        )
        credential = await token_manager.obtain_credential()
        drive = GoogleDriveClient(http, credential.access_token)

        logger.info("Assuming upload role ...")
        uploader = await asyncio.to_thread(
            S3Uploader.from_assumed_role,
            config.bucket,
            config.role_arn,
            config.role_session_name,
            config.aws_region,
        )

        with tempfile.TemporaryDirectory(prefix="drive-archiver-") as tmp_dir:
            pipeline = TransferPipeline(
                remote=drive,
                object_store=uploader,
                folder_name=config.folder_name,
                work_dir=work_dir or Path(tmp_dir),
                concurrency=config.concurrency,
            )
            return await pipeline.run()


async def main() -> int:
    """Load configuration, run the migration and return the exit code."""
    setup_logging()
    try:
        config = EnvironmentLoader.load_config()
    except ArchiverError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_FATAL

    setup_logging(config.log_level)
    try:
        summary = await run_migration(config)
    except (ArchiverError, httpx.HTTPError, OSError) as e:
        logger.error(f"Migration aborted: {e}")
        return EXIT_FATAL

    report_summary(summary)
    return exit_code_for(summary)


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
