"""Main entry point for the Cert Backup Operator."""

from __future__ import annotations

import logging
import sys
from typing import Sequence

from kubernetes import client

from . import health
from . import logging as structured_logging
from .config import OperatorConfig, load_config, prepare_backup_directory
from .constants import CONTROLLER_NAME
from .orchestrator import ReconciliationOrchestrator, ShutdownContext
from .services.kubernetes import (
    KubernetesCertificateSource,
    KubernetesSecretResolver,
    load_api_client,
)
from .utils.errors import ConfigurationError, sanitize_exception
from .writer import BackupWriter

logger = logging.getLogger(__name__)


def build_orchestrator(
    config: OperatorConfig,
    api_client: client.ApiClient,
    shutdown: ShutdownContext,
) -> ReconciliationOrchestrator:
    """Wire the Kubernetes services and the backup writer together."""
    return ReconciliationOrchestrator(
        source=KubernetesCertificateSource(client.CustomObjectsApi(api_client), config.namespace),
        resolver=KubernetesSecretResolver(client.CoreV1Api(api_client)),
        writer=BackupWriter(config.cert_location),
        shutdown=shutdown,
    )


def _fatal(message: str, error: BaseException) -> int:
    structured_logging.log_controller_event(
        logger,
        CONTROLLER_NAME,
        event="fatal",
        message=f"{message}: {sanitize_exception(error)}",
        level=logging.CRITICAL,
        error_type=type(error).__name__,
    )
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Run the operator until a shutdown signal or a fatal error.

    Returns:
        Process exit status
    """
    structured_logging.setup_structured_logging()
    try:
        config = load_config(argv)
    except ConfigurationError as e:
        return _fatal("Invalid configuration", e)
    structured_logging.setup_structured_logging(config.log_level)

    try:
        prepare_backup_directory(config.cert_location)
        api_client = load_api_client(config.kubeconfig)
    except ConfigurationError as e:
        return _fatal("Startup failed", e)

    server = None
    if config.metrics_port:
        try:
            server = health.start_http_server(config.metrics_port)
        except OSError as e:
            return _fatal(f"Unable to serve metrics on port {config.metrics_port}", e)

    shutdown = ShutdownContext()
    shutdown.install_signal_handlers()
    orchestrator = build_orchestrator(config, api_client, shutdown)
    structured_logging.log_controller_event(
        logger,
        CONTROLLER_NAME,
        event="startup",
        message="Starting certificate backup",
        cert_location=str(config.cert_location),
        namespace=config.namespace or "*",
    )
    try:
        orchestrator.run()
    except Exception as e:
        return _fatal("Certificate backup stopped", e)
    finally:
        if server is not None:
            server.shutdown()
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
