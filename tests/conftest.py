"""Shared fixtures for the unit tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from cert_backup_operator import health
from cert_backup_operator.models import CertificateRecord, StatusCondition


@pytest.fixture
def make_record() -> Callable[..., CertificateRecord]:
    """Factory for certificate records."""

    def _make(
        namespace: str = "prod",
        name: str = "api",
        created: datetime = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        conditions: tuple[str, ...] = ("Ready",),
        secret_name: str | None = None,
    ) -> CertificateRecord:
        return CertificateRecord(
            namespace=namespace,
            name=name,
            creation_timestamp=created,
            conditions=tuple(StatusCondition(type=c, status="True") for c in conditions),
            secret_name=secret_name,
        )

    return _make


@pytest.fixture
def certificate_object() -> Callable[..., dict[str, Any]]:
    """Factory for Certificate objects as returned by the custom objects API."""

    def _make(
        namespace: str = "prod",
        name: str = "api",
        created: str = "2024-01-02T03:04:05Z",
        conditions: list[dict[str, Any]] | None = None,
        secret_name: str | None = "api-tls",
    ) -> dict[str, Any]:
        obj: dict[str, Any] = {
            "apiVersion": "cert-manager.io/v1",
            "kind": "Certificate",
            "metadata": {
                "namespace": namespace,
                "name": name,
                "creationTimestamp": created,
            },
            "spec": {},
            "status": {
                "conditions": conditions
                if conditions is not None
                else [{"type": "Ready", "status": "True", "reason": "Ready"}],
            },
        }
        if secret_name:
            obj["spec"]["secretName"] = secret_name
        return obj

    return _make


@pytest.fixture(autouse=True)
def reset_readiness():
    """Start every test with the operator reported as not ready."""
    health.mark_not_ready()
    yield
    health.mark_not_ready()
