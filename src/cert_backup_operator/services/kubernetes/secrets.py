"""Key material lookup for certificates."""

from __future__ import annotations

import time

from kubernetes import client
from urllib3.exceptions import HTTPError

from ... import metrics
from ...constants import SECRET_KEY_CERTIFICATE, SECRET_KEY_PRIVATE_KEY
from ...models import SecretMaterial
from ...utils.errors import ResolveError, sanitize_exception
from ...utils.secrets import read_secret_bytes


class KubernetesSecretResolver:
    """Reads ``tls.crt`` and ``tls.key`` from the secret backing a certificate."""

    def __init__(self, api: client.CoreV1Api) -> None:
        self.api = api

    def resolve(self, namespace: str, name: str) -> SecretMaterial:
        """Fetch the key material stored in a secret.

        Missing data keys yield ``None`` for that half; deciding whether that
        is acceptable is up to the caller. No retries are made.

        Args:
            namespace: Namespace of the secret
            name: Name of the secret

        Returns:
            SecretMaterial with the decoded bytes

        Raises:
            ResolveError: If the secret does not exist or the API call fails
        """
        start_time = time.time()
        try:
            data = read_secret_bytes(self.api, namespace, name)
            metrics.api_call_total.labels(api_type="k8s", operation="read_secret", result="success").inc()
        except (ValueError, client.exceptions.ApiException, HTTPError) as e:
            metrics.api_call_total.labels(api_type="k8s", operation="read_secret", result="error").inc()
            raise ResolveError(namespace, name, sanitize_exception(e)) from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation="read_secret").observe(duration)

        return SecretMaterial(
            certificate=data.get(SECRET_KEY_CERTIFICATE),
            private_key=data.get(SECRET_KEY_PRIVATE_KEY),
        )
