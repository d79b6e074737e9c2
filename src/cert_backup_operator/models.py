"""Models for certificates, secret material and watch events."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class StatusCondition:
    """A single entry of a certificate's ``status.conditions`` list."""

    type: str
    status: str | None = None


@dataclass(frozen=True)
class CertificateRecord:
    """Read-only view of a cert-manager Certificate resource."""

    namespace: str
    name: str
    creation_timestamp: datetime
    conditions: tuple[StatusCondition, ...] = ()
    secret_name: str | None = None

    def __post_init__(self) -> None:
        if self.secret_name is None:
            object.__setattr__(self, "secret_name", self.name)

    @property
    def key(self) -> str:
        """Return ``namespace/name`` for logging."""
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_resource(cls, obj: dict[str, Any]) -> CertificateRecord:
        """Build a record from a Certificate object as returned by the API.

        Args:
            obj: Certificate custom object (dict form)

        Returns:
            CertificateRecord for the object

        Raises:
            ValueError: If namespace, name or creation timestamp are missing
        """
        meta = obj.get("metadata") or {}
        namespace = meta.get("namespace")
        name = meta.get("name")
        created = meta.get("creationTimestamp")
        if not namespace or not name:
            raise ValueError("certificate object has no namespace or name")
        if not created:
            raise ValueError(f"certificate {namespace}/{name} has no creationTimestamp")

        status = obj.get("status") or {}
        conditions = tuple(
            StatusCondition(type=cond.get("type", ""), status=cond.get("status"))
            for cond in status.get("conditions") or []
        )
        spec = obj.get("spec") or {}

        return cls(
            namespace=namespace,
            name=name,
            creation_timestamp=parse_timestamp(created),
            conditions=conditions,
            secret_name=spec.get("secretName") or name,
        )


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an RFC 3339 API timestamp into an aware UTC datetime.

    Sub-second precision is dropped since the API only reports seconds.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True)
class SecretMaterial:
    """Certificate and private key bytes read from a TLS secret."""

    certificate: bytes | None = field(default=None, repr=False)
    private_key: bytes | None = field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        """Return True when both halves are present."""
        return self.certificate is not None and self.private_key is not None

    @property
    def missing(self) -> list[str]:
        """Return the names of the missing halves."""
        missing = []
        if self.certificate is None:
            missing.append("certificate")
        if self.private_key is None:
            missing.append("private_key")
        return missing


class EventKind(enum.Enum):
    """Kinds of watch events the operator distinguishes."""

    ADDED = "Added"
    MODIFIED = "Modified"
    OTHER = "Other"


@dataclass(frozen=True)
class WatchEvent:
    """A single event from the certificate watch stream.

    Added and Modified events always carry a record; Other events never do.
    """

    kind: EventKind
    record: CertificateRecord | None = None
    raw_type: str | None = None

    def __post_init__(self) -> None:
        if self.kind is EventKind.OTHER:
            if self.record is not None:
                raise ValueError("Other events carry no certificate record")
        elif self.record is None:
            raise ValueError(f"{self.kind.value} events require a certificate record")

    @classmethod
    def added(cls, record: CertificateRecord) -> WatchEvent:
        return cls(EventKind.ADDED, record, "ADDED")

    @classmethod
    def modified(cls, record: CertificateRecord) -> WatchEvent:
        return cls(EventKind.MODIFIED, record, "MODIFIED")

    @classmethod
    def other(cls, raw_type: str | None = None) -> WatchEvent:
        return cls(EventKind.OTHER, None, raw_type)
