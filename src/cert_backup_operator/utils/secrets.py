"""Utilities for reading Kubernetes secrets."""

from __future__ import annotations

import base64
import binascii

from kubernetes import client


def decode_secret_value(value: str | bytes) -> bytes:
    """Decode a single value of a secret's data mapping.

    The API returns data values base64 encoded. Some client versions and test
    doubles hand out raw bytes instead, which are returned unchanged.

    Args:
        value: Value from ``V1Secret.data``

    Returns:
        Decoded bytes
    """
    if isinstance(value, bytes):
        return value
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        # Not base64, assume it's already decoded
        return value.encode("utf-8")


def read_secret_bytes(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
) -> dict[str, bytes]:
    """Read all data from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret

    Returns:
        Dictionary of secret data (decoded to bytes)

    Raises:
        ValueError: If secret not found
        client.exceptions.ApiException: On any other API error
    """
    try:
        secret = api.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise ValueError(f"Secret '{secret_name}' not found in namespace '{namespace}'") from e
        raise

    return {key: decode_secret_value(value) for key, value in (secret.data or {}).items()}
