"""Utility functions for the Cert Backup Operator."""

from .errors import (
    CertBackupError,
    ConfigurationError,
    DiscoveryError,
    ResolveError,
    WriteError,
    sanitize_error_message,
    sanitize_exception,
)
from .secrets import read_secret_bytes

__all__ = [
    "CertBackupError",
    "ConfigurationError",
    "DiscoveryError",
    "ResolveError",
    "WriteError",
    "sanitize_error_message",
    "sanitize_exception",
    "read_secret_bytes",
]
