"""
Configuration for Drive Archiver.
"""

from .settings import ArchiverConfig
from .environment import EnvironmentLoader
from .validation import ConfigValidator, ValidationError

__all__ = [
    "ArchiverConfig",
    "EnvironmentLoader",
    "ConfigValidator",
    "ValidationError",
]
