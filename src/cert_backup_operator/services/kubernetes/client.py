"""Kubernetes client bootstrap."""

from __future__ import annotations

import logging

from kubernetes import client, config

from ...utils.errors import ConfigurationError, sanitize_exception

logger = logging.getLogger(__name__)


def load_api_client(kubeconfig: str | None = None) -> client.ApiClient:
    """Create a Kubernetes API client.

    In-cluster configuration is tried first; outside a cluster the kubeconfig
    file is used.

    Args:
        kubeconfig: Path to a kubeconfig file, or None for the client default

    Returns:
        Configured ApiClient instance

    Raises:
        ConfigurationError: If neither configuration can be loaded
    """
    logger.info("Trying in-cluster configuration")
    try:
        config.load_incluster_config()
        return client.ApiClient()
    except config.ConfigException:
        logger.info(f"Not running inside a cluster, using kubeconfig {kubeconfig or 'default'}")

    try:
        config.load_kube_config(config_file=kubeconfig)
    except (config.ConfigException, OSError) as e:
        raise ConfigurationError(f"unable to build client config: {sanitize_exception(e)}") from e
    return client.ApiClient()
