"""Readiness gating for certificate backups."""

from __future__ import annotations

from .constants import COND_READY
from .models import CertificateRecord


def is_ready(record: CertificateRecord) -> bool:
    """Decide whether a certificate is eligible for backup.

    Only the first reported condition is inspected: the certificate is ready
    when that condition's type is ``Ready``. A ``Ready`` entry further down the
    list does not count, and the condition's status is not consulted.

    Args:
        record: Certificate to check

    Returns:
        True if the certificate should be backed up
    """
    # NOTE: condition order is not guaranteed by the API. Switching to a
    # type-based scan changes which certificates get backed up.
    if not record.conditions:
        return False
    return record.conditions[0].type == COND_READY
