"""Tests for the idempotent backup writer."""

from __future__ import annotations

import os
import stat
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from cert_backup_operator.utils.errors import WriteError
from cert_backup_operator.writer import BackupWriter, FileStatus, backup_file_name

_real_open = os.open


class TestBackupFileName:
    """Test cases for backup_file_name function."""

    def test_file_name_format(self, make_record):
        """Test the deterministic file name scheme."""
        record = make_record()

        assert backup_file_name(record, "crt") == "prod_api_20240102_030405.crt"
        assert backup_file_name(record, "key") == "prod_api_20240102_030405.key"

    def test_recreated_certificate_gets_new_paths(self, make_record, tmp_path):
        """Test that records differing only in creation time map to disjoint paths."""
        writer = BackupWriter(tmp_path)
        first = make_record()
        second = make_record(created=datetime(2024, 1, 2, 3, 4, 6, tzinfo=timezone.utc))

        assert set(writer.paths_for(first)).isdisjoint(writer.paths_for(second))


class TestBackupWriter:
    """Test cases for BackupWriter.write."""

    def test_writes_both_files(self, make_record, tmp_path):
        """Test writing a certificate and key to a fresh directory."""
        writer = BackupWriter(tmp_path)

        result = writer.write(make_record(), b"CERT", b"KEY")

        assert (tmp_path / "prod_api_20240102_030405.crt").read_bytes() == b"CERT"
        assert (tmp_path / "prod_api_20240102_030405.key").read_bytes() == b"KEY"
        assert result.ok
        assert [o.status for o in result.outcomes] == [FileStatus.WRITTEN, FileStatus.WRITTEN]

    def test_files_are_owner_only(self, make_record, tmp_path):
        """Test that backup files get owner-only permissions."""
        writer = BackupWriter(tmp_path)

        writer.write(make_record(), b"CERT", b"KEY")

        for path in writer.paths_for(make_record()):
            assert stat.S_IMODE(path.stat().st_mode) == 0o700

    def test_second_write_is_noop(self, make_record, tmp_path):
        """Test that writing the same certificate twice performs no writes."""
        writer = BackupWriter(tmp_path)
        record = make_record()
        writer.write(record, b"CERT", b"KEY")

        with patch("cert_backup_operator.writer.os.open") as mock_open:
            result = writer.write(record, b"OTHER", b"OTHER")

        mock_open.assert_not_called()
        assert [o.status for o in result.outcomes] == [FileStatus.SKIPPED, FileStatus.SKIPPED]
        assert sorted(p.name for p in tmp_path.iterdir()) == [
            "prod_api_20240102_030405.crt",
            "prod_api_20240102_030405.key",
        ]
        assert (tmp_path / "prod_api_20240102_030405.crt").read_bytes() == b"CERT"

    def test_existing_file_not_overwritten(self, make_record, tmp_path):
        """Test that an existing file is kept even if its content differs."""
        writer = BackupWriter(tmp_path)
        cert_path, key_path = writer.paths_for(make_record())
        cert_path.write_bytes(b"OLD")

        result = writer.write(make_record(), b"CERT", b"KEY")

        assert cert_path.read_bytes() == b"OLD"
        assert key_path.read_bytes() == b"KEY"
        assert result.certificate.status is FileStatus.SKIPPED
        assert result.private_key.status is FileStatus.WRITTEN

    def test_partial_failure_keeps_successful_half(self, make_record, tmp_path):
        """Test that a failing key write leaves the certificate file in place."""
        writer = BackupWriter(tmp_path)

        def fail_for_key(path, *args, **kwargs):
            if str(path).endswith(".key"):
                raise PermissionError(13, "Permission denied", str(path))
            return _real_open(path, *args, **kwargs)

        with patch("cert_backup_operator.writer.os.open", side_effect=fail_for_key):
            with pytest.raises(WriteError) as exc_info:
                writer.write(make_record(), b"CERT", b"KEY")

        result = exc_info.value.result
        assert result.certificate.status is FileStatus.WRITTEN
        assert result.private_key.status is FileStatus.FAILED
        assert isinstance(result.private_key.error, PermissionError)
        assert (tmp_path / "prod_api_20240102_030405.crt").read_bytes() == b"CERT"
        assert not (tmp_path / "prod_api_20240102_030405.key").exists()
        assert "prod_api_20240102_030405.key" in str(exc_info.value)

    def test_failed_certificate_still_attempts_key(self, make_record, tmp_path):
        """Test that both halves are attempted when the first one fails."""
        writer = BackupWriter(tmp_path)

        def fail_for_cert(path, *args, **kwargs):
            if str(path).endswith(".crt"):
                raise OSError(28, "No space left on device", str(path))
            return _real_open(path, *args, **kwargs)

        with patch("cert_backup_operator.writer.os.open", side_effect=fail_for_cert):
            with pytest.raises(WriteError) as exc_info:
                writer.write(make_record(), b"CERT", b"KEY")

        assert [o.kind for o in exc_info.value.result.failed] == ["crt"]
        assert (tmp_path / "prod_api_20240102_030405.key").read_bytes() == b"KEY"

    def test_missing_directory_is_write_error(self, make_record, tmp_path):
        """Test that a missing base directory is reported as WriteError."""
        writer = BackupWriter(tmp_path / "missing")

        with pytest.raises(WriteError) as exc_info:
            writer.write(make_record(), b"CERT", b"KEY")

        assert len(exc_info.value.result.failed) == 2

    def test_file_created_concurrently_is_skipped(self, make_record, tmp_path):
        """Test that a file appearing after the existence check is not overwritten."""
        writer = BackupWriter(tmp_path)

        def racing_open(path, *args, **kwargs):
            if str(path).endswith(".crt"):
                raise FileExistsError(17, "File exists", str(path))
            return _real_open(path, *args, **kwargs)

        with patch("cert_backup_operator.writer.os.open", side_effect=racing_open):
            result = writer.write(make_record(), b"CERT", b"KEY")

        assert result.certificate.status is FileStatus.SKIPPED
        assert result.private_key.status is FileStatus.WRITTEN

    def test_overlong_file_name_is_write_error(self, make_record, tmp_path):
        """Test that a name exceeding the filesystem limit fails both halves as WriteError."""
        writer = BackupWriter(tmp_path)
        record = make_record(namespace="n" * 63, name="a" * 240)

        with pytest.raises(WriteError) as exc_info:
            writer.write(record, b"CERT", b"KEY")

        result = exc_info.value.result
        assert result.certificate.status is FileStatus.FAILED
        assert result.private_key.status is FileStatus.FAILED
        assert isinstance(result.certificate.error, OSError)
        assert list(tmp_path.iterdir()) == []

    def test_existence_check_failure_is_write_error(self, make_record, tmp_path):
        """Test that an OSError from the existence check is reported per file."""
        writer = BackupWriter(tmp_path)

        with patch(
            "cert_backup_operator.writer.Path.exists",
            side_effect=PermissionError(13, "Permission denied"),
        ):
            with pytest.raises(WriteError) as exc_info:
                writer.write(make_record(), b"CERT", b"KEY")

        assert len(exc_info.value.result.failed) == 2
        assert list(tmp_path.iterdir()) == []

    def test_partial_file_removal_failure_still_reported(self, make_record, tmp_path):
        """Test that failing to remove a half-written file keeps the WriteError."""
        writer = BackupWriter(tmp_path)

        with patch("cert_backup_operator.writer.os.fchmod", side_effect=OSError(5, "I/O error")):
            with patch(
                "cert_backup_operator.writer.Path.unlink",
                side_effect=PermissionError(13, "Permission denied"),
            ):
                with pytest.raises(WriteError) as exc_info:
                    writer.write(make_record(), b"CERT", b"KEY")

        assert len(exc_info.value.result.failed) == 2
