"""Interfaces the reconciliation engine depends on."""

from __future__ import annotations

from typing import Iterator, Protocol

from ..models import CertificateRecord, SecretMaterial, WatchEvent


class Subscription(Protocol):
    """An open, ordered stream of certificate watch events."""

    def __iter__(self) -> Iterator[WatchEvent]:
        """Yield events in delivery order.

        Raises:
            DiscoveryError: If the stream fails
        """
        ...

    def close(self) -> None:
        """Release the subscription."""
        ...


class CertificateSource(Protocol):
    """Protocol defining certificate discovery operations."""

    def snapshot(self) -> list[CertificateRecord]:
        """List all current certificates.

        Raises:
            DiscoveryError: If the certificates cannot be listed
        """
        ...

    def subscribe(self) -> Subscription:
        """Open the watch stream for certificates.

        Raises:
            DiscoveryError: If the watch cannot be established
        """
        ...


class SecretResolver(Protocol):
    """Protocol defining key material lookup."""

    def resolve(self, namespace: str, name: str) -> SecretMaterial:
        """Fetch the certificate and key bytes stored in a secret.

        Raises:
            ResolveError: If the secret cannot be fetched
        """
        ...
