"""Configuration for the Cert Backup Operator.

Every setting can be given as a command-line flag; the environment provides
the defaults so the operator can be configured from a Deployment manifest.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

from .constants import (
    BACKUP_DIR_MODE,
    DEFAULT_CERT_LOCATION,
    DEFAULT_KUBECONFIG,
    DEFAULT_LOG_LEVEL,
    DEFAULT_METRICS_PORT,
)
from .utils.errors import ConfigurationError


@dataclass(frozen=True)
class OperatorConfig:
    """Resolved operator settings."""

    cert_location: Path
    kubeconfig: str | None = None
    namespace: str | None = None
    metrics_port: int = DEFAULT_METRICS_PORT
    log_level: str = DEFAULT_LOG_LEVEL


def expand_prefix(path: str) -> str:
    """Replace a leading ``~`` with the current user's home directory.

    Raises:
        ConfigurationError: If the home directory cannot be determined
    """
    if not path.startswith("~"):
        return path
    try:
        home = str(Path.home())
    except (RuntimeError, KeyError) as e:
        raise ConfigurationError("unable to get current user's home directory") from e
    return path.replace("~", home, 1)


def build_parser(environ: Mapping[str, str] | None = None) -> argparse.ArgumentParser:
    """Build the command-line parser, taking defaults from the environment."""
    env = os.environ if environ is None else environ
    parser = argparse.ArgumentParser(
        prog="cert-backup-operator",
        description="Back up cert-manager certificates and keys to a local directory",
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help=f"(optional) path to the kubeconfig file, used outside a cluster "
        f"(default: $KUBECONFIG or {DEFAULT_KUBECONFIG})",
    )
    parser.add_argument(
        "--certlocation",
        default=env.get("CERT_BACKUP_LOCATION", DEFAULT_CERT_LOCATION),
        help="path to folder where certificate backups are created (default: %(default)s)",
    )
    parser.add_argument(
        "--namespace",
        default=env.get("WATCH_NAMESPACE") or None,
        help="only back up certificates from this namespace (default: all namespaces)",
    )
    parser.add_argument(
        "--metrics-port",
        default=env.get("METRICS_PORT", str(DEFAULT_METRICS_PORT)),
        help="port for /metrics, /healthz and /readyz, 0 disables (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default=env.get("LOG_LEVEL", DEFAULT_LOG_LEVEL),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="log level (default: %(default)s)",
    )
    return parser


def load_config(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> OperatorConfig:
    """Parse flags and environment into an OperatorConfig.

    Raises:
        ConfigurationError: If a value is invalid
    """
    args = build_parser(environ).parse_args(argv)

    try:
        metrics_port = int(args.metrics_port)
    except ValueError as e:
        raise ConfigurationError(f"invalid metrics port: {args.metrics_port!r}") from e
    if not 0 <= metrics_port <= 65535:
        raise ConfigurationError(f"metrics port out of range: {metrics_port}")

    return OperatorConfig(
        cert_location=Path(expand_prefix(args.certlocation)),
        kubeconfig=expand_prefix(args.kubeconfig) if args.kubeconfig else None,
        namespace=args.namespace,
        metrics_port=metrics_port,
        log_level=args.log_level,
    )


def prepare_backup_directory(path: Path) -> Path:
    """Make sure the backup directory exists.

    A missing directory is created with owner-only permissions.

    Raises:
        ConfigurationError: If the path cannot be created or is not a directory
    """
    try:
        path.mkdir(mode=BACKUP_DIR_MODE, parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"unable to create backup directory {path}: {e}") from e
    if not path.is_dir():
        raise ConfigurationError(f"backup location {path} is not a directory")
    return path
