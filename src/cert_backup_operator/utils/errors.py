"""Error types and sanitization utilities to prevent information leakage."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..writer import BackupResult


class CertBackupError(Exception):
    """Base class for all operator errors."""


class ConfigurationError(CertBackupError):
    """Raised when the operator cannot be configured at startup."""


class DiscoveryError(CertBackupError):
    """Raised when certificates cannot be listed or watched."""


class ResolveError(CertBackupError):
    """Raised when the key material of a certificate cannot be fetched."""

    def __init__(self, namespace: str, name: str, message: str) -> None:
        super().__init__(f"{namespace}/{name}: {message}")
        self.namespace = namespace
        self.name = name


class WriteError(CertBackupError):
    """Raised when one or both backup files of a certificate could not be written.

    The attached result records the outcome of both halves, including the one
    that may have succeeded.
    """

    def __init__(self, result: BackupResult) -> None:
        failed = ", ".join(
            f"{outcome.path}: {outcome.error}" for outcome in result.failed
        )
        super().__init__(f"failed to write backup files: {failed}")
        self.result = result


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----",
    r"(?<=Bearer )[A-Za-z0-9\-_\.=]+",
    r"(?<=token=)[^\s&,;]+",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "password",
    "token",
    "private_key",
    "client-key-data",
    "tls.key",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.DOTALL)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"{re.escape(field)}[:\s]+([^\s,;\)]+)",
            f"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))
