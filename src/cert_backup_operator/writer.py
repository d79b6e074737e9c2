"""Idempotent backup writer for certificate and key files."""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from . import metrics
from .constants import (
    BACKUP_FILE_MODE,
    BACKUP_SUFFIX_CERTIFICATE,
    BACKUP_SUFFIX_PRIVATE_KEY,
    CONTROLLER_NAME,
    KIND_CERTIFICATE,
)
from .logging import log_resource_event
from .models import CertificateRecord
from .utils.errors import WriteError, sanitize_exception

logger = logging.getLogger(__name__)


class FileStatus(enum.Enum):
    """Outcome of a single backup file write."""

    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class FileOutcome:
    """Outcome for one file of a backup pair."""

    kind: str
    path: Path
    status: FileStatus
    error: OSError | None = None


@dataclass(frozen=True)
class BackupResult:
    """Outcome for both files of a backup pair."""

    certificate: FileOutcome
    private_key: FileOutcome

    @property
    def outcomes(self) -> list[FileOutcome]:
        return [self.certificate, self.private_key]

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status is FileStatus.FAILED]

    @property
    def written(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.status is FileStatus.WRITTEN]

    @property
    def ok(self) -> bool:
        return not self.failed


def backup_file_name(record: CertificateRecord, suffix: str) -> str:
    """Build the deterministic backup file name for a certificate.

    The name is derived from the immutable creation timestamp, so the same
    certificate instance always maps to the same file and a re-created
    certificate maps to a new one.

    Args:
        record: Certificate being backed up
        suffix: File suffix without the dot ("crt" or "key")

    Returns:
        File name such as ``prod_api_20240102_030405.crt``
    """
    ts = record.creation_timestamp
    stamp = (
        f"{ts.year:04d}{ts.month:02d}{ts.day:02d}"
        f"_{ts.hour:02d}{ts.minute:02d}{ts.second:02d}"
    )
    return f"{record.namespace}_{record.name}_{stamp}.{suffix}"


class BackupWriter:
    """Writes certificate/key pairs into a backup directory, at most once per path."""

    def __init__(self, base_directory: str | os.PathLike[str]) -> None:
        self.base_directory = Path(base_directory)

    def paths_for(self, record: CertificateRecord) -> tuple[Path, Path]:
        """Return the certificate and key backup paths for a record."""
        return (
            self.base_directory / backup_file_name(record, BACKUP_SUFFIX_CERTIFICATE),
            self.base_directory / backup_file_name(record, BACKUP_SUFFIX_PRIVATE_KEY),
        )

    def write(
        self,
        record: CertificateRecord,
        certificate: bytes,
        private_key: bytes,
    ) -> BackupResult:
        """Back up a certificate and its key unless already backed up.

        Each file is handled independently: an existing file is left untouched
        and a missing one is created with owner-only permissions. A failure on
        one half does not prevent the other half from being written, and
        nothing is rolled back.

        Args:
            record: Certificate being backed up
            certificate: Certificate bytes (``tls.crt``)
            private_key: Private key bytes (``tls.key``)

        Returns:
            Outcome of both files

        Raises:
            WriteError: If either file could not be written
        """
        cert_path, key_path = self.paths_for(record)
        result = BackupResult(
            certificate=self._write_once(record, BACKUP_SUFFIX_CERTIFICATE, cert_path, certificate),
            private_key=self._write_once(record, BACKUP_SUFFIX_PRIVATE_KEY, key_path, private_key),
        )
        if not result.ok:
            raise WriteError(result)
        return result

    def _write_once(
        self,
        record: CertificateRecord,
        kind: str,
        path: Path,
        data: bytes,
    ) -> FileOutcome:
        try:
            exists = path.exists()
        except OSError as e:
            # e.g. ENAMETOOLONG for long namespace/name combinations
            return self._failed(record, kind, path, e)
        if exists:
            metrics.backup_files_total.labels(kind=kind, result="skipped").inc()
            return FileOutcome(kind, path, FileStatus.SKIPPED)

        log_resource_event(
            logger,
            controller=CONTROLLER_NAME,
            resource_kind=KIND_CERTIFICATE,
            resource_name=record.name,
            namespace=record.namespace,
            event="backup",
            reason="Saving",
            message=f"Saving {kind} for {record.key} to {path}",
            path=str(path),
        )
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, BACKUP_FILE_MODE)
        except FileExistsError:
            # Appeared between the existence check and the open
            metrics.backup_files_total.labels(kind=kind, result="skipped").inc()
            return FileOutcome(kind, path, FileStatus.SKIPPED)
        except OSError as e:
            return self._failed(record, kind, path, e)

        try:
            with os.fdopen(fd, "wb") as fh:
                os.fchmod(fh.fileno(), BACKUP_FILE_MODE)
                fh.write(data)
        except OSError as e:
            self._discard_partial(path)
            return self._failed(record, kind, path, e)

        metrics.backup_files_total.labels(kind=kind, result="written").inc()
        return FileOutcome(kind, path, FileStatus.WRITTEN)

    def _discard_partial(self, path: Path) -> None:
        """Remove a half-written file so a later observation can write it again."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Unable to remove partial backup file {path}: {sanitize_exception(e)}")

    def _failed(
        self,
        record: CertificateRecord,
        kind: str,
        path: Path,
        error: OSError,
    ) -> FileOutcome:
        metrics.backup_files_total.labels(kind=kind, result="failed").inc()
        log_resource_event(
            logger,
            controller=CONTROLLER_NAME,
            resource_kind=KIND_CERTIFICATE,
            resource_name=record.name,
            namespace=record.namespace,
            event="backup",
            reason="WriteFailed",
            message=f"Failed to write {kind} for {record.key} to {path}",
            level=logging.ERROR,
            path=str(path),
            error=sanitize_exception(error),
            error_type=type(error).__name__,
        )
        return FileOutcome(kind, path, FileStatus.FAILED, error)
