"""
Drive Archiver.

One-shot migration of a Google Drive folder into S3: every binary file is
downloaded, verified, uploaded and only then deleted from Drive.
"""

__version__ = "1.0.0"
