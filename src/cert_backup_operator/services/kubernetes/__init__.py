"""Kubernetes-backed implementations of the service interfaces."""

from .certificates import CertificateSubscription, KubernetesCertificateSource
from .client import load_api_client
from .secrets import KubernetesSecretResolver

__all__ = [
    "CertificateSubscription",
    "KubernetesCertificateSource",
    "KubernetesSecretResolver",
    "load_api_client",
]
